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
"""XAR archive writer.

Writes small XAR archives with the same layout productbuild uses: header,
zlib-compressed TOC, then a heap that starts with the TOC checksum. Used to
build .pkg fixtures without macOS tooling.

Usage:
    with open("output.pkg", "wb") as f:
        writer = XarWriter(f)
        writer.add_file("Distribution", distribution_xml)
        writer.add_file("app.pkg/PackageInfo", info, encoding="bzip2")
        writer.set_signature()
        writer.finish()
"""

import bz2
import io
import zlib

from lxml import etree

from xar_tools.lib.xar_header import XAR_HEADER_SIZE, XAR_MAGIC, HashAlgorithm

# Encoding styles as written by xar(1).
STYLE_ZLIB = "application/x-gzip"
STYLE_BZIP2 = "application/x-bzip2"
STYLE_NONE = "application/octet-stream"

_COMPRESSORS = {
    "zlib": (STYLE_ZLIB, zlib.compress),
    "bzip2": (STYLE_BZIP2, bz2.compress),
    "none": (STYLE_NONE, lambda data: data),
}


def pack_header(toc_compressed_len, toc_uncompressed_len, hash_algo,
                header_size=XAR_HEADER_SIZE, version=1, magic=XAR_MAGIC):
    """Return the header bytes, zero-padded to ``header_size``.

    Values are written as given, so callers can produce invalid headers.
    """
    header = (
        magic
        + header_size.to_bytes(2, "big")
        + version.to_bytes(2, "big")
        + toc_compressed_len.to_bytes(8, "big")
        + toc_uncompressed_len.to_bytes(8, "big")
        + int(hash_algo).to_bytes(4, "big")
    )
    if header_size > XAR_HEADER_SIZE:
        header += b"\x00" * (header_size - XAR_HEADER_SIZE)
    return header


def assemble_xar(toc_xml, heap=b"", hash_algo=HashAlgorithm.NONE,
                 toc_uncompressed_len=None, header_size=XAR_HEADER_SIZE):
    """Return header + zlib(toc_xml) + heap for a hand-written TOC."""
    if isinstance(toc_xml, str):
        toc_xml = toc_xml.encode("utf-8")
    compressed = zlib.compress(toc_xml)
    if toc_uncompressed_len is None:
        toc_uncompressed_len = len(toc_xml)
    return (
        pack_header(len(compressed), toc_uncompressed_len, hash_algo,
                    header_size=header_size)
        + compressed
        + heap
    )


class XarWriter:
    """Write XAR archives."""

    VERSION = 1

    def __init__(self, stream, hash_algo=HashAlgorithm.SHA1,
                 header_size=XAR_HEADER_SIZE, root_tag="xar"):
        """Initialize writer with output stream.

        Args:
            stream: Binary file-like object to write to.
            hash_algo: Checksum algorithm declared in the header. Unless it
              is NONE, the TOC checksum is stored at the start of the heap.
            header_size: Declared header size; extra bytes are zero-filled.
            root_tag: Root element of the TOC document ("xar", or "toc" to
              write a bare <toc> root).
        """
        self.stream = stream
        self.hash_algo = HashAlgorithm(hash_algo)
        self.header_size = header_size
        self._root = etree.Element(root_tag)
        self._toc = self._root if root_tag == "toc" else etree.SubElement(self._root, "toc")
        self._dirs = {}
        self._blobs = []
        self._heap_size = 0
        self._file_id = 1  # Auto-increment file id
        self._checksum_size = 0

        hasher = self.hash_algo.new()
        if hasher is not None:
            self._checksum_size = hasher.digest_size
            checksum = etree.SubElement(
                self._toc, "checksum", style=self.hash_algo.hashlib_name)
            etree.SubElement(checksum, "offset").text = "0"
            etree.SubElement(checksum, "size").text = str(self._checksum_size)
            self._heap_size = self._checksum_size

    def _new_file_element(self, parent, name, file_type):
        elem = etree.SubElement(parent, "file", id=str(self._file_id))
        self._file_id += 1
        etree.SubElement(elem, "name").text = name
        etree.SubElement(elem, "type").text = file_type
        return elem

    def _parent_for(self, path):
        """Return the element new entries under ``path``'s directory go in."""
        parent = self._toc
        parts = path.split("/")[:-1]
        for i, name in enumerate(parts):
            dir_path = "/".join(parts[:i + 1])
            if dir_path not in self._dirs:
                self._dirs[dir_path] = self._new_file_element(parent, name, "directory")
            parent = self._dirs[dir_path]
        return parent

    def add_file(self, path, content, encoding="zlib", compress=True):
        """Add a regular file to the archive.

        Args:
            path: Slash-separated path within the archive; parent
              directories are created as needed.
            content: File content as bytes or str.
            encoding: "zlib", "bzip2", "none", or any other string, which is
              written verbatim as the encoding style and stores the
              content unchanged.
            compress: If False, ``content`` is stored as given even though
              the encoding style claims compression.
        """
        if isinstance(content, str):
            content = content.encode("utf-8")

        if encoding in _COMPRESSORS:
            style, compressor = _COMPRESSORS[encoding]
        else:
            style, compressor = encoding, lambda data: data
        stored = compressor(content) if compress else content

        parent = self._parent_for(path)
        elem = self._new_file_element(parent, path.split("/")[-1], "file")
        data = etree.SubElement(elem, "data")
        etree.SubElement(data, "length").text = str(len(stored))
        etree.SubElement(data, "offset").text = str(self._heap_size)
        etree.SubElement(data, "size").text = str(len(content))
        etree.SubElement(data, "encoding", style=style)

        self._blobs.append(stored)
        self._heap_size += len(stored)

    def set_signature(self, kind="signature", style="RSA"):
        """Add an (empty) <signature> or <x-signature> element to the TOC."""
        signature = etree.SubElement(self._toc, kind, style=style)
        etree.SubElement(signature, "offset").text = "0"
        etree.SubElement(signature, "size").text = "0"

    def toc_xml(self):
        return etree.tostring(self._root, xml_declaration=True, encoding="UTF-8")

    def finish(self):
        """Write header, TOC and heap to the stream."""
        toc_xml = self.toc_xml()
        compressed = zlib.compress(toc_xml)

        self.stream.write(pack_header(
            len(compressed), len(toc_xml), self.hash_algo,
            header_size=self.header_size, version=self.VERSION))
        self.stream.write(compressed)

        hasher = self.hash_algo.new()
        if hasher is not None:
            hasher.update(compressed)
            self.stream.write(hasher.digest())
        for blob in self._blobs:
            self.stream.write(blob)


def build_xar(files=(), signature=None, **kwargs) -> bytes:
    """Build an archive in memory.

    ``files`` is a sequence of (path, content) or (path, content, encoding)
    tuples; ``signature`` is None, "signature" or "x-signature".
    """
    out = io.BytesIO()
    writer = XarWriter(out, **kwargs)
    for entry in files:
        writer.add_file(*entry)
    if signature:
        writer.set_signature(signature)
    writer.finish()
    return out.getvalue()
