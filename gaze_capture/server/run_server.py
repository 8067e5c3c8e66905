#!/usr/bin/env python3
"""
CLI entry point for the calibration upload server.

Usage:
    python -m gaze_capture.server.run_server [--host HOST] [--port PORT] [--config CONFIG]

Examples:
    python -m gaze_capture.server.run_server
    python -m gaze_capture.server.run_server --port 9000
    python -m gaze_capture.server.run_server --config custom_config.yaml
"""

import argparse
import sys

from gaze_capture import constants as const
from gaze_capture.server.app import UploadService, create_app
from gaze_capture.utils.config_loader import load_config, get_section
from gaze_capture.utils.logger import setup_from_config


def banner(host: str, port: int, config_path: str, bucket: str) -> str:
    """Startup banner showing where the server listens and where frames go."""
    upload_url = f"http://{host}:{port}/upload"
    return f"""
╔═══════════════════════════════════════════════════════════════╗
║           Gaze Calibration Upload Server                      ║
╠═══════════════════════════════════════════════════════════════╣
║  Host:   {host:<53}║
║  Port:   {port:<53}║
║  Config: {config_path:<53}║
║  Bucket: {bucket:<53}║
╠═══════════════════════════════════════════════════════════════╣
║  Point the capture wizard (upload.url) at:                    ║
║  {upload_url:<61}║
╚═══════════════════════════════════════════════════════════════╝
"""


def run_server(host=None, port=None, config_path: str = "config/config.yaml"):
    """
    Run the upload server.

    Args:
        host: Host address to bind to (overrides config)
        port: Port to listen on (overrides config)
        config_path: Path to config file
    """
    config = load_config(config_path, required=False)
    server_cfg = get_section(config, 'server')
    logger = setup_from_config(config)

    host = host or server_cfg.get('host', const.DEFAULT_SERVER_HOST)
    port = port or int(server_cfg.get('port', const.DEFAULT_SERVER_PORT))

    service = UploadService(
        bucket=server_cfg.get('bucket', const.DEFAULT_BUCKET),
        user_id=server_cfg.get('user_id', const.DEFAULT_USER_ID),
    )
    app = create_app(service)

    print(banner(host, port, config_path, service.bucket))
    logger.info(f"Upload server listening on http://{host}:{port}")
    logger.info(f"Storing frames in bucket '{service.bucket}' as user '{service.user_id}'")
    app.run(host=host, port=port, debug=False, use_reloader=False, threaded=True)


def main():
    parser = argparse.ArgumentParser(
        description="Gaze Calibration Upload Server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
    Start server on default port ({const.DEFAULT_SERVER_PORT}):
        python -m gaze_capture.server.run_server

    Start server on custom port:
        python -m gaze_capture.server.run_server --port 9000

    Use custom config file:
        python -m gaze_capture.server.run_server --config my_config.yaml

Store credentials are read from the {const.STORE_URL_ENV} and {const.STORE_KEY_ENV}
environment variables on every request.
        """
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help=f"Host address to bind to (default: {const.DEFAULT_SERVER_HOST})"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help=f"Port to listen on (default: {const.DEFAULT_SERVER_PORT})"
    )

    parser.add_argument(
        "--config",
        type=str,
        default="config/config.yaml",
        help="Path to configuration file (default: config/config.yaml)"
    )

    args = parser.parse_args()

    try:
        run_server(host=args.host, port=args.port, config_path=args.config)
    except KeyboardInterrupt:
        print("\n\nServer stopped.")
        sys.exit(0)
    except Exception as e:
        print(f"\nError: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
