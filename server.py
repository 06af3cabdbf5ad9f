#!/usr/bin/env python3
"""
Video Player Server
Streams a single video file to browsers on the local network.
Supports Range requests so the player can seek.
"""

import argparse
import http.server
import os
import socket
import socketserver
import sys
import threading
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import unquote, urlsplit

from loguru import logger

from streamer.errors import BindError, ConfigError, MalformedRange, NoRouteFound
from streamer.model import MediaSource, ServerConfig
from streamer.network import resolve_lan_address
from streamer.player import VIDEO_ROUTE, render_player_page
from streamer.ranges import parse_range
from streamer.terminal import HELP_TEXT, print_banner

# Configuration
DEFAULT_PORT = 9090
MIN_PORT = 1
MAX_PORT = 65535

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"

DISCONNECT_ERRORS = (ConnectionAbortedError, ConnectionResetError, BrokenPipeError)


def configure_logging(verbose: bool = False, log_dir: Optional[Path] = None) -> None:
    """Console sink always; daily rotated file sink when log_dir is given."""
    logger.remove()  # Remove default handler
    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level="DEBUG" if verbose else "INFO"
    )
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_dir / "server_{time:YYYY-MM-DD}.log",
            rotation="1 day",
            retention="7 days",
            format=FILE_FORMAT,
            level="DEBUG"
        )


class RangeHTTPRequestHandler(http.server.BaseHTTPRequestHandler):
    """HTTP handler with Range request support for video seeking."""

    # Larger buffer for faster streaming (1MB instead of default 8KB)
    rbufsize = 1024 * 1024
    wbufsize = 1024 * 1024

    # 2MB chunks for faster streaming
    CHUNK_SIZE = 2 * 1024 * 1024

    def send_media(self, media: MediaSource) -> None:
        """Stream `media`, whole or the part named by the Range header."""
        try:
            f = media.open()
        except OSError as e:
            logger.error(f"Failed to open video file {media.path}: {e}")
            self.send_error(500, "Failed to open video file")
            return

        with f:
            try:
                fs = os.fstat(f.fileno())
            except OSError as e:
                logger.error(f"Failed to get file information for {media.path}: {e}")
                self.send_error(500, "Failed to get file information")
                return
            file_len = fs.st_size

            try:
                byte_range = parse_range(self.headers.get('Range'), file_len)
            except MalformedRange as e:
                logger.warning(str(e))
                self.send_error(400, "Invalid Range request")
                return

            if byte_range is None:
                status, offset, count = 200, 0, file_len
            elif not byte_range.is_satisfiable:
                self.send_unsatisfiable(file_len)
                return
            else:
                status, offset, count = 206, byte_range.start, byte_range.length

            # Seek before any header goes out so a failure is still a clean 500
            try:
                f.seek(offset)
            except OSError as e:
                logger.error(f"Failed to seek {media.path} to {offset}: {e}")
                self.send_error(500, "Failed to seek file")
                return

            self.send_response(status)
            self.send_header("Content-Type", media.content_type)
            if byte_range is not None:
                self.send_header("Content-Range", byte_range.content_range(file_len))
            self.send_header("Content-Length", str(count))
            self.send_header("Accept-Ranges", "bytes")
            self.send_header("Last-Modified", self.date_time_string(fs.st_mtime))
            self.end_headers()

            sent = self.copy_bytes(f, count)
            logger.debug(f"Sent {sent}/{count} bytes of {media.name} from offset {offset}")

    def send_unsatisfiable(self, file_len: int) -> None:
        self.send_response(416)
        self.send_header("Content-Range", f"bytes */{file_len}")
        self.send_header("Content-Length", "0")
        self.end_headers()

    def copy_bytes(self, source, count: int) -> int:
        """
        Copy exactly `count` bytes from `source` to the client.

        Returns the number of bytes handed to the socket, counting a chunk
        that was in flight when the client went away. A disconnected client
        or a failing read only abandons this response.
        """
        remaining = count
        try:
            while remaining > 0:
                data = source.read(min(self.CHUNK_SIZE, remaining))
                if not data:
                    logger.warning(f"File ended early, {remaining} bytes short")
                    self.close_connection = True
                    break
                remaining -= len(data)
                self.wfile.write(data)
        except DISCONNECT_ERRORS:
            logger.debug(f"Client {self.address_string()} disconnected after {count - remaining} bytes")
            self.close_connection = True
        except OSError as e:
            # Headers are already out, nothing left to do but drop the connection
            logger.error(f"Stream aborted after {count - remaining} bytes: {e}")
            self.close_connection = True
        return count - remaining


class VideoPlayerHandler(RangeHTTPRequestHandler):
    """Main request handler for the video player server."""

    server_version = "VideoPlayer/1.0"
    # Keep-alive; every response carries Content-Length
    protocol_version = "HTTP/1.1"

    @property
    def config(self) -> ServerConfig:
        return self.server.config

    def do_GET(self):
        """Handle GET requests."""
        path = unquote(urlsplit(self.path).path)

        if path == '/' or path == '/index.html':
            self.serve_player_page()
            return

        if path == VIDEO_ROUTE:
            self.send_media(self.config.media)
            return

        self.send_error(404, "Not found")

    def serve_player_page(self):
        media = self.config.media
        content = render_player_page(media.name)

        self.send_response(200)
        self.send_header('Content-Type', 'text/html; charset=utf-8')
        self.send_header('Content-Length', str(len(content)))
        self.send_header('Cache-Control', 'no-cache')
        self.end_headers()
        self.wfile.write(content)

    def log_message(self, format, *args):
        """Route request lines to loguru."""
        logger.debug(f"{self.address_string()} - {format % args}")


class ThreadedHTTPServer(socketserver.ThreadingMixIn, http.server.HTTPServer):
    """Threaded HTTP server for handling multiple connections."""
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, config: ServerConfig, handler_class=VideoPlayerHandler):
        self.config = config
        try:
            super().__init__((config.host, config.port), handler_class)
        except OSError as e:
            raise BindError(f"Cannot listen on port {config.port}: {e}") from e

    def server_bind(self):
        """Bind with optimized socket settings."""
        # Disable Nagle's algorithm for lower latency
        self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        super().server_bind()

    def handle_error(self, request, client_address):
        """Suppress connection reset errors."""
        if isinstance(sys.exc_info()[1], DISCONNECT_ERRORS):
            return
        logger.opt(exception=True).error(f"Error handling request from {client_address[0]}")


def start_server(config: ServerConfig) -> Tuple[ThreadedHTTPServer, threading.Thread]:
    """Bind the listening socket and serve from a background thread."""
    httpd = ThreadedHTTPServer(config)
    thread = threading.Thread(target=httpd.serve_forever, name="http-server", daemon=True)
    thread.start()
    logger.debug(f"Listening on {httpd.server_address[0] or '*'}:{httpd.server_address[1]}")
    return httpd, thread


def run_server(config: ServerConfig) -> None:
    """Serve until Ctrl+C. Startup output is printed while the server runs."""
    httpd, thread = start_server(config)
    try:
        print_banner(config)
        thread.join()
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    finally:
        httpd.shutdown()
        httpd.server_close()


def validate_port(port: int) -> int:
    if not MIN_PORT <= port <= MAX_PORT:
        raise ConfigError(f"Port number {port} is invalid, must be in the range {MIN_PORT}-{MAX_PORT}")
    return port


def resolve_media(path: str) -> MediaSource:
    media_path = Path(path)
    if not media_path.exists():
        raise ConfigError(f"Video file does not exist -> {path}")
    if not media_path.is_file():
        raise ConfigError(f"Not a file -> {path}")
    return MediaSource(media_path)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='video-player',
        description='Video Playback HTTP Service',
        epilog=HELP_TEXT,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('path', nargs='?',
                        help='Absolute/relative path of the video file to play')
    parser.add_argument('-p', '--port', type=int, default=DEFAULT_PORT,
                        help=f'Service port (default {DEFAULT_PORT}, range {MIN_PORT}-{MAX_PORT})')
    parser.add_argument('--host', default='',
                        help='Address to bind (default: all interfaces)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log every request and debug details')
    parser.add_argument('--log-dir', type=Path, default=None,
                        help='Also write daily rotated log files to this directory')
    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose, args.log_dir)

    try:
        port = validate_port(args.port)
        if args.path is None:
            parser.print_help()
            return 0
        media = resolve_media(args.path)
    except ConfigError as e:
        logger.error(str(e))
        return 1

    try:
        lan_address = resolve_lan_address()
    except NoRouteFound as e:
        logger.error(f"Failed to get local IP address: {e}")
        return 1

    config = ServerConfig(port=port, media=media, host=args.host, lan_address=lan_address)

    try:
        run_server(config)
    except BindError as e:
        logger.error(f"Service startup failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
