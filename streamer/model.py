"""
Data models for the video player.
"""

from dataclasses import dataclass
from pathlib import Path
import mimetypes


# MIME types browsers expect for the common containers
mimetypes.add_type('video/mp4', '.mp4')
mimetypes.add_type('video/mp4', '.m4v')
mimetypes.add_type('video/webm', '.webm')
mimetypes.add_type('video/x-matroska', '.mkv')
mimetypes.add_type('video/mp2t', '.ts')
mimetypes.add_type('video/quicktime', '.mov')
mimetypes.add_type('video/ogg', '.ogv')


@dataclass(frozen=True)
class ByteRange:
    """Closed byte interval [start, end] requested by a client."""
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    @property
    def is_satisfiable(self) -> bool:
        """False when the interval is empty, e.g. start past the end of file."""
        return self.start <= self.end

    def content_range(self, total: int) -> str:
        return f"bytes {self.start}-{self.end}/{total}"


@dataclass(frozen=True)
class MediaSource:
    """The video file on disk. Opened and stat'ed anew for every request."""
    path: Path

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def content_type(self) -> str:
        return mimetypes.guess_type(str(self.path))[0] or 'application/octet-stream'

    def open(self):
        return open(self.path, 'rb')


@dataclass(frozen=True)
class ServerConfig:
    """Process-wide settings, built once before the server starts."""
    port: int
    media: MediaSource
    host: str = ''
    lan_address: str = 'localhost'

    @property
    def local_url(self) -> str:
        return f"http://localhost:{self.port}"

    @property
    def access_url(self) -> str:
        """URL printed and encoded in the QR code for LAN clients."""
        return f"http://{self.lan_address}:{self.port}"
