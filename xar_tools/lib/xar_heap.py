# Copyright 2026 The Bazel Authors. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Access to file contents stored in the XAR heap.

The heap starts right after the compressed TOC. Each TOC <data> element
gives an offset relative to the heap start, the stored length, and an
encoding style such as "application/x-gzip".
"""

import bz2
import enum
import logging
import zlib

from xar_tools.lib.errors import TruncatedArchiveError, UnsupportedEncodingError

logger = logging.getLogger(__name__)


class Encoding(enum.Enum):
    NONE = "none"
    ZLIB = "zlib"
    BZIP2 = "bzip2"
    UNKNOWN = "unknown"


def encoding_from_style(style: str) -> Encoding:
    """Map a TOC encoding style string to a codec."""
    style = style or ""
    if "x-gzip" in style:
        return Encoding.ZLIB
    elif "x-bzip2" in style:
        return Encoding.BZIP2
    elif not style.strip() or "octet-stream" in style:
        return Encoding.NONE
    else:
        return Encoding.UNKNOWN


def slice_heap(heap: bytes, offset: int, length: int) -> bytes:
    """Return ``length`` bytes at ``offset`` into the heap, bounds-checked."""
    if offset < 0 or length < 0:
        raise TruncatedArchiveError(
            f"reading heap: invalid range offset={offset} length={length}")
    end = offset + length
    if end > len(heap):
        raise TruncatedArchiveError(
            f"reading heap: XAR data truncated: bytes {offset}-{end} extend "
            f"past end of heap ({len(heap)} bytes)")
    return bytes(heap[offset:end])


def decode_entry(raw: bytes, encoding: Encoding, style: str = "") -> bytes:
    """Decompress raw heap bytes according to ``encoding``."""
    if encoding is Encoding.ZLIB:
        # x-gzip entries are zlib streams, not gzip files.
        try:
            return zlib.decompress(raw)
        except zlib.error as e:
            raise UnsupportedEncodingError(f"inflating {style} entry: {e}") from e
    elif encoding is Encoding.BZIP2:
        try:
            return bz2.decompress(raw)
        except (OSError, ValueError) as e:
            raise UnsupportedEncodingError(
                f"decompressing {style} entry: {e}") from e
    elif encoding is Encoding.UNKNOWN:
        logger.warning(
            "unrecognized encoding style %r, returning stored bytes", style)
        return raw
    else:
        return raw


def read_heap_entry(heap: bytes, data) -> bytes:
    """Extract and decompress the heap bytes described by a DataDescriptor."""
    raw = slice_heap(heap, data.offset, data.length)
    encoding = encoding_from_style(data.encoding)
    logger.debug(
        "heap entry offset=%d length=%d encoding=%s",
        data.offset, data.length, encoding.value)
    return decode_entry(raw, encoding, data.encoding)
