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
"""Decoder for the fixed-size XAR archive header."""

import enum
import hashlib
import logging
import struct
from dataclasses import dataclass

from xar_tools.lib.errors import InvalidFormatError, UnsupportedHashAlgorithmError

logger = logging.getLogger(__name__)

XAR_MAGIC = b"xar!"
XAR_HEADER_SIZE = 28

# magic, header_size, version, toc_compressed_len, toc_uncompressed_len,
# cksum_algo
_HEADER_STRUCT = struct.Struct(">4sHHQQI")


class HashAlgorithm(enum.IntEnum):
    """Checksum algorithms a XAR header may declare for its TOC."""

    NONE = 0
    SHA1 = 1
    MD5 = 2
    SHA256 = 3
    SHA512 = 4

    @property
    def hashlib_name(self):
        return _HASHLIB_NAMES[self]

    def new(self):
        """Return a fresh hashlib object, or None for HashAlgorithm.NONE."""
        if self is HashAlgorithm.NONE:
            return None
        return hashlib.new(self.hashlib_name)


_HASHLIB_NAMES = {
    HashAlgorithm.NONE: None,
    HashAlgorithm.SHA1: "sha1",
    HashAlgorithm.MD5: "md5",
    HashAlgorithm.SHA256: "sha256",
    HashAlgorithm.SHA512: "sha512",
}


@dataclass(frozen=True)
class XarHeader:
    magic: bytes
    header_size: int
    version: int
    toc_compressed_len: int
    toc_uncompressed_len: int
    hash_algo: HashAlgorithm

    @property
    def heap_start(self) -> int:
        """Absolute offset of the heap, which follows the compressed TOC."""
        return self.header_size + self.toc_compressed_len


def parse_xar_header(data: bytes) -> XarHeader:
    """Parse the 28-byte XAR header.

    Layout (big-endian):
      0: uint32  magic ("xar!" = 0x78617221)
      4: uint16  header_size
      6: uint16  version
      8: uint64  toc_compressed_len
     16: uint64  toc_uncompressed_len
     24: uint32  cksum_algo
    """
    if len(data) < XAR_HEADER_SIZE:
        raise InvalidFormatError(
            f"decode xar header: data too small for XAR header "
            f"({len(data)} of {XAR_HEADER_SIZE} bytes)")

    (magic, header_size, version, toc_compressed_len, toc_uncompressed_len,
     cksum_algo) = _HEADER_STRUCT.unpack_from(data, 0)

    if magic != XAR_MAGIC:
        raise InvalidFormatError(
            f"decode xar header: not a XAR file: magic {magic!r} "
            f"(expected {XAR_MAGIC!r})")
    if header_size < XAR_HEADER_SIZE:
        raise InvalidFormatError(
            f"decode xar header: header size {header_size} is smaller "
            f"than {XAR_HEADER_SIZE}")

    try:
        hash_algo = HashAlgorithm(cksum_algo)
    except ValueError:
        raise UnsupportedHashAlgorithmError(cksum_algo) from None

    header = XarHeader(
        magic=magic,
        header_size=header_size,
        version=version,
        toc_compressed_len=toc_compressed_len,
        toc_uncompressed_len=toc_uncompressed_len,
        hash_algo=hash_algo,
    )
    logger.debug("XAR header: %s", header)
    return header
