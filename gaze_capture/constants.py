"""
Default values and drawing constants shared across the capture wizard and
the upload server.
"""

import cv2

# Capture sequence
DEFAULT_FRAMES_PER_DIRECTION = 5
DEFAULT_COUNTDOWN_SECONDS = 3
COUNTDOWN_TICK_SECONDS = 1.0
DEFAULT_FRAME_INTERVAL = 0.3
DEFAULT_SETTLE_DELAY = 2.0
DEFAULT_JPEG_QUALITY = 90

# Eye region heuristic (fractions of the frame)
DEFAULT_CROP_WIDTH_FRACTION = 0.4
DEFAULT_CROP_TOP = 0.1
DEFAULT_CROP_BOTTOM = 0.6

# Upload
DEFAULT_UPLOAD_URL = "http://127.0.0.1:5000/upload"
DEFAULT_UPLOAD_TIMEOUT = 10.0
JPEG_CONTENT_TYPE = "image/jpeg"

# Server / store
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 5000
DEFAULT_BUCKET = "calibration"
DEFAULT_USER_ID = "user1"
STORE_URL_ENV = "SUPABASE_URL"
STORE_KEY_ENV = "SUPABASE_SECRET_KEY"

# Camera
DEFAULT_CAMERA_INDEX = 0
CAMERA_READ_RETRY_DELAY = 0.05

# View
WINDOW_NAME = "Gaze Calibration"
VIEW_REFRESH_SECONDS = 1.0 / 30
ALERT_KEY_HINT = "Press any key to dismiss"

TEXT_FONT = cv2.FONT_HERSHEY_SIMPLEX
TEXT_FONT_SCALE_SMALL = 0.6
TEXT_FONT_SCALE_MEDIUM = 0.9
TEXT_FONT_SCALE_LARGE = 1.4
TEXT_THICKNESS_NORMAL = 1
TEXT_THICKNESS_BOLD = 2
TEXT_MARGIN_X = 20
TEXT_LINE_HEIGHT = 40

COLOR_WHITE = (255, 255, 255)
COLOR_GRAY = (180, 180, 180)
COLOR_BLUE = (250, 165, 96)
COLOR_GREEN = (0, 200, 0)
COLOR_RED = (0, 0, 255)
COLOR_PANEL = (40, 40, 40)
COLOR_BACKGROUND = (26, 26, 26)
