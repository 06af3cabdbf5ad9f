"""
Startup banner and QR code printed to the terminal.
"""

import sys

import qrcode
from qrcode.constants import ERROR_CORRECT_M

from .model import ServerConfig


HELP_TEXT = """
Features:
  Start an HTTP service to play the specified video file in a browser,
  supporting access via mobile phone QR code scanning

Examples:
  video-player ./movie.mp4                # Use default port 9090
  video-player -p 8888 ./movie.mp4        # Use port 8888
  video-player --port 7070 /home/video.mp4

Access Methods:
  1. Local access: http://localhost:port
  2. Mobile/LAN device: Scan the terminal QR code, or visit http://[local IP]:port
"""


def print_qr(data: str, out=None) -> None:
    """Print `data` as a QR code using half-block characters."""
    out = out or sys.stdout
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, border=1)
    qr.add_data(data)
    qr.make(fit=True)
    # invert gives dark modules on a light quiet zone in dark terminals
    qr.print_ascii(out=out, invert=True)


def print_banner(config: ServerConfig, out=None) -> None:
    out = out or sys.stdout
    print("=" * 50, file=out)
    print(f"  Video file:   {config.media.path}", file=out)
    print(f"  Local access: {config.local_url}", file=out)
    print(f"  LAN access:   {config.access_url}", file=out)
    print("=" * 50, file=out)
    print("Scan QR code to access (phone and computer must be on the same LAN):", file=out)
    print_qr(config.access_url, out=out)
    print(file=out)
    print("Press Ctrl+C to stop the service.", file=out)
    out.flush()
