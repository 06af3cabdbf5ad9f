"""
Range header parsing.

Rules:
1. Empty header means the whole file
2. Header must start with "bytes="
3. Only the first range of a multi-range header is used
4. "start-" runs to the end of the file, "start-end" is clamped to it
5. start is never checked against the file length here
"""

import re
from typing import Optional

from .errors import MalformedRange
from .model import ByteRange


BYTES_PREFIX = 'bytes='

_DIGITS = re.compile(r'\d+', re.ASCII)


def _parse_offset(value: str, header: str) -> int:
    value = value.strip()
    if not _DIGITS.fullmatch(value):
        raise MalformedRange(f"Invalid Range request: {header!r}")
    return int(value)


def parse_range(header: Optional[str], length: int) -> Optional[ByteRange]:
    """
    Parse a Range header value against a resource of `length` bytes.

    Returns None when no range was requested.

    Examples (length=1000):
        ""                -> None
        "bytes=0-"        -> ByteRange(0, 999)
        "bytes=500-2000"  -> ByteRange(500, 999)
        "bytes=0-10,20-30"-> ByteRange(0, 10)
        "bytes=abc-100"   -> MalformedRange
    """
    if not header:
        return None

    if not header.startswith(BYTES_PREFIX):
        raise MalformedRange(f"Unsupported range unit: {header!r}")

    first = header[len(BYTES_PREFIX):].split(',', 1)[0]
    parts = first.split('-')

    start = _parse_offset(parts[0], header)

    end = length - 1
    if len(parts) > 1 and parts[1].strip():
        end = _parse_offset(parts[1], header)

    if end > length - 1:
        end = length - 1

    return ByteRange(start, end)
