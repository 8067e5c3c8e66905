"""
Gaze calibration capture: a webcam wizard that photographs the eye region
for six gaze directions, and the upload server that stores the frames.
"""

__version__ = '1.0.0'
