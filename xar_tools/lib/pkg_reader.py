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
"""Pure Python reader for macOS .pkg (XAR) installer metadata.

A product .pkg file is a XAR archive (magic "xar!"): a fixed header, a
zlib-compressed XML table of contents, and a heap holding the stored
files. This module answers two questions without unpacking the Payload:

  * what product is this? (extract_xar_metadata reads the Distribution
    file from the heap and derives name, version and bundle identifier)
  * is it signed? (check_pkg_signature looks for <signature> or
    <x-signature> in the TOC; the signature itself is not verified)

Both accept bytes or a binary file object.
"""

import hashlib
import io
import logging
from dataclasses import dataclass
from typing import Optional

from xar_tools.lib.distribution import metadata_from_distribution
from xar_tools.lib.errors import NotSignedError
from xar_tools.lib.xar_header import XAR_HEADER_SIZE, XarHeader, parse_xar_header
from xar_tools.lib.xar_heap import read_heap_entry
from xar_tools.lib.xar_toc import HashingReader, TableOfContents, read_xar_toc

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "Distribution"


@dataclass(frozen=True)
class InstallerMetadata:
    """Cataloging information for an installer package."""

    name: str = ""
    version: str = ""
    bundle_identifier: str = ""
    sha_sum: bytes = b""

    @property
    def sha256(self) -> str:
        return self.sha_sum.hex()

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "version": self.version,
            "bundle_identifier": self.bundle_identifier,
            "sha256": self.sha256,
        }


@dataclass(frozen=True)
class XarArchive:
    """A decoded archive: header, TOC, and the buffered heap."""

    header: XarHeader
    toc: TableOfContents
    heap: bytes
    sha_sum: bytes

    def read_file(self, path: str) -> Optional[bytes]:
        """Return the decoded contents of the entry at ``path``, or None."""
        entry = self.toc.find(path)
        if entry is None or entry.data is None:
            return None
        return read_heap_entry(self.heap, entry.data)


def _as_stream(source):
    if isinstance(source, (bytes, bytearray, memoryview)):
        return io.BytesIO(source)
    return source


def _read_header(reader: HashingReader) -> XarHeader:
    """Read and decode the header, leaving ``reader`` at the TOC."""
    header = parse_xar_header(b"".join(reader.read_exactly(XAR_HEADER_SIZE)))
    # Headers may be longer than the fixed part; skip the rest.
    for _ in reader.read_exactly(header.header_size - XAR_HEADER_SIZE):
        pass
    return header


def read_xar_archive(source, compute_toc_digest: bool = False) -> XarArchive:
    """Decode header and TOC and buffer the heap of a XAR archive.

    Every byte consumed from ``source`` goes through a SHA-256 hasher, so
    the returned ``sha_sum`` identifies the whole input.
    """
    whole = hashlib.sha256()
    reader = HashingReader(_as_stream(source), whole)

    header = _read_header(reader)
    toc = read_xar_toc(reader, header, compute_digest=compute_toc_digest)
    # The heap is addressed by offset, so it has to be buffered.
    heap = reader.read()
    logger.debug("read %d bytes, heap is %d bytes", reader.bytes_read, len(heap))
    return XarArchive(header=header, toc=toc, heap=heap, sha_sum=whole.digest())


def extract_xar_metadata(source) -> InstallerMetadata:
    """Extract name, version and bundle identifier from a .pkg file.

    A missing Distribution file is not an error: the result then only
    carries the SHA-256 of the input.
    """
    return metadata_from_archive(read_xar_archive(source))


def metadata_from_archive(archive: XarArchive) -> InstallerMetadata:
    """Derive InstallerMetadata from an already decoded archive."""
    contents = archive.read_file(DISTRIBUTION_NAME)
    if contents is None:
        logger.debug("no %s entry in TOC", DISTRIBUTION_NAME)
        return InstallerMetadata(sha_sum=archive.sha_sum)

    fields = metadata_from_distribution(contents)
    return InstallerMetadata(sha_sum=archive.sha_sum, **fields)


def check_pkg_signature(source):
    """Check whether the provided data is a signed .pkg (XAR) file.

    Raises:
      InvalidFormatError: the data is not a XAR archive.
      NotSignedError: the TOC has neither <signature> nor <x-signature>.
      CorruptTOCError, MalformedXMLError, UnsupportedHashAlgorithmError:
        the header or TOC could not be decoded.
    """
    reader = HashingReader(_as_stream(source))
    header = _read_header(reader)
    # Hash the TOC as a verifier would; the digest itself is not needed.
    toc = read_xar_toc(reader, header, compute_digest=True)
    if not toc.is_signed:
        raise NotSignedError()


def is_pkg_signed(source) -> bool:
    """Like check_pkg_signature, but returns False for unsigned archives."""
    try:
        check_pkg_signature(source)
    except NotSignedError:
        return False
    return True
