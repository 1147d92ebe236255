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
"""Reader for the zlib-compressed XML table of contents of a XAR archive.

The TOC follows the header directly. Its XML looks like:

    <xar>
      <toc>
        <checksum style="sha1">...</checksum>
        <signature style="RSA">...</signature>
        <file id="1">
          <name>Distribution</name>
          <data>
            <offset>20</offset>
            <length>1024</length>
            <size>4096</size>
            <encoding style="application/x-gzip"/>
          </data>
        </file>
      </toc>
    </xar>

Directories are <file> elements that contain further <file> elements.
"""

import logging
import zlib
from dataclasses import dataclass, field
from typing import List, Optional

from xar_tools.lib.errors import CorruptTOCError, MalformedXMLError
from xar_tools.lib.xml_parse import child_text, parse_xml

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class HashingReader:
    """File-like wrapper that digests every byte read through it.

    Reads are forwarded to ``stream``; whatever comes back is fed to each of
    the ``hashers`` before being returned, so callers can decompress or parse
    the data while the digest accumulates.
    """

    def __init__(self, stream, *hashers):
        self.stream = stream
        self.hashers = [h for h in hashers if h is not None]
        self.bytes_read = 0

    def read(self, size=-1) -> bytes:
        data = self.stream.read(size)
        if data:
            for h in self.hashers:
                h.update(data)
            self.bytes_read += len(data)
        return data

    def read_exactly(self, size):
        """Yield chunks until ``size`` bytes were read or the stream ends."""
        remaining = size
        while remaining > 0:
            chunk = self.read(min(remaining, READ_CHUNK_SIZE))
            if not chunk:
                return
            remaining -= len(chunk)
            yield chunk


@dataclass(frozen=True)
class DataDescriptor:
    """Where a file's bytes live in the heap and how they are encoded."""

    offset: int
    length: int
    size: int
    encoding: str = ""


@dataclass(frozen=True)
class FileEntry:
    name: str
    path: str
    data: Optional[DataDescriptor] = None


@dataclass
class TableOfContents:
    files: List[FileEntry] = field(default_factory=list)
    has_signature: bool = False
    has_x_signature: bool = False
    digest: Optional[str] = None

    @property
    def is_signed(self) -> bool:
        return self.has_signature or self.has_x_signature

    def find(self, path: str) -> Optional[FileEntry]:
        """Return the entry whose path matches ``path`` exactly, if any."""
        for entry in self.files:
            if entry.path == path:
                return entry
        return None


def decompress_toc(reader: HashingReader, compressed_len: int) -> bytes:
    """Inflate exactly ``compressed_len`` bytes of TOC read from ``reader``."""
    decompressor = zlib.decompressobj()
    parts = []
    consumed = 0
    try:
        for chunk in reader.read_exactly(compressed_len):
            consumed += len(chunk)
            parts.append(decompressor.decompress(chunk))
        parts.append(decompressor.flush())
    except zlib.error as e:
        raise CorruptTOCError(f"decompressing TOC: {e}") from e

    if not decompressor.eof:
        raise CorruptTOCError(
            f"decompressing TOC: unexpected EOF after {consumed} of "
            f"{compressed_len} compressed bytes")
    return b"".join(parts)


def _parse_int(data_elem, tag: str) -> int:
    text = child_text(data_elem, tag)
    if not text:
        return 0
    try:
        return int(text)
    except ValueError:
        raise MalformedXMLError(
            f"decoding TOC: <{tag}> is not an integer: {text!r}") from None


def _parse_data(file_elem) -> Optional[DataDescriptor]:
    data_elem = file_elem.find("data")
    if data_elem is None:
        return None

    encoding = ""
    encoding_elem = data_elem.find("encoding")
    if encoding_elem is not None:
        encoding = encoding_elem.get("style", "")

    return DataDescriptor(
        offset=_parse_int(data_elem, "offset"),
        length=_parse_int(data_elem, "length"),
        size=_parse_int(data_elem, "size"),
        encoding=encoding,
    )


def _walk_files(element, parent: str, files: list):
    """Recursively collect <file> elements in document order."""
    for file_elem in element.findall("file"):
        name = child_text(file_elem, "name")
        path = f"{parent}/{name}" if parent else name
        files.append(FileEntry(name=name, path=path, data=_parse_data(file_elem)))
        _walk_files(file_elem, path, files)


def _find_toc_element(root):
    if root.tag == "toc":
        return root
    return root.find("toc")


def parse_toc_xml(toc_xml: bytes) -> TableOfContents:
    """Parse decompressed TOC XML into a TableOfContents."""
    root = parse_xml(toc_xml, "TOC", lenient=True)
    toc_elem = _find_toc_element(root)
    if toc_elem is None:
        raise MalformedXMLError(
            f"decoding TOC: no <toc> element under <{root.tag}>")

    toc = TableOfContents(
        has_signature=toc_elem.find("signature") is not None,
        has_x_signature=toc_elem.find("x-signature") is not None,
    )
    _walk_files(toc_elem, "", toc.files)
    return toc


def read_xar_toc(stream, header, compute_digest: bool = False) -> TableOfContents:
    """Read, inflate and parse the TOC from ``stream``.

    ``stream`` must be positioned at the first TOC byte. When
    ``compute_digest`` is set, the compressed bytes are hashed with the
    header's algorithm as they are read, which is what a signer covers.
    """
    hasher = header.hash_algo.new() if compute_digest else None
    reader = HashingReader(stream, hasher)

    toc_xml = decompress_toc(reader, header.toc_compressed_len)
    if len(toc_xml) != header.toc_uncompressed_len:
        logger.warning(
            "TOC inflated to %d bytes, header declares %d",
            len(toc_xml), header.toc_uncompressed_len)

    toc = parse_toc_xml(toc_xml)
    if hasher is not None:
        toc.digest = hasher.hexdigest()
    logger.debug(
        "TOC: %d entries, signature=%s, x-signature=%s",
        len(toc.files), toc.has_signature, toc.has_x_signature)
    return toc
