#!/usr/bin/env python3
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
"""Tests for the XAR header, TOC and heap layers."""

import bz2
import gzip
import hashlib
import io
import unittest
import zlib

from xar_tools.lib.errors import (
    CorruptTOCError,
    InvalidFormatError,
    MalformedXMLError,
    TruncatedArchiveError,
    UnsupportedEncodingError,
    UnsupportedHashAlgorithmError,
)
from xar_tools.lib.xar_header import (
    XAR_HEADER_SIZE,
    HashAlgorithm,
    parse_xar_header,
)
from xar_tools.lib.xar_heap import (
    Encoding,
    encoding_from_style,
    read_heap_entry,
    slice_heap,
)
from xar_tools.lib.xar_toc import (
    DataDescriptor,
    HashingReader,
    parse_toc_xml,
    read_xar_toc,
)
from xar_tools.lib.xar_writer import assemble_xar, build_xar, pack_header


def toc_stream(data):
    """Return a stream positioned at the TOC of ``data``."""
    stream = io.BytesIO(data)
    stream.seek(parse_xar_header(data).header_size)
    return stream


class XarHeaderTest(unittest.TestCase):
    """Test parse_xar_header."""

    def test_parses_written_header(self):
        data = build_xar([("Distribution", "<x/>")], hash_algo=HashAlgorithm.SHA256)
        header = parse_xar_header(data)

        self.assertEqual(header.magic, b"xar!")
        self.assertEqual(header.header_size, XAR_HEADER_SIZE)
        self.assertEqual(header.version, 1)
        self.assertEqual(header.hash_algo, HashAlgorithm.SHA256)
        self.assertGreater(header.toc_compressed_len, 0)
        self.assertGreater(header.toc_uncompressed_len, 0)
        self.assertEqual(header.heap_start,
                         XAR_HEADER_SIZE + header.toc_compressed_len)

    def test_all_known_hash_codes(self):
        for code, algo in [(0, HashAlgorithm.NONE), (1, HashAlgorithm.SHA1),
                           (2, HashAlgorithm.MD5), (3, HashAlgorithm.SHA256),
                           (4, HashAlgorithm.SHA512)]:
            with self.subTest(algo=algo):
                header = parse_xar_header(pack_header(10, 20, code))
                self.assertIs(header.hash_algo, algo)

    def test_unknown_hash_code(self):
        with self.assertRaises(UnsupportedHashAlgorithmError) as cm:
            parse_xar_header(pack_header(10, 20, 7))
        self.assertEqual(cm.exception.code, 7)
        self.assertEqual(cm.exception.stage, "header")

    def test_too_short(self):
        for size in (0, 4, XAR_HEADER_SIZE - 1):
            with self.subTest(size=size):
                with self.assertRaises(InvalidFormatError) as cm:
                    parse_xar_header(pack_header(10, 20, 1)[:size])
                self.assertEqual(cm.exception.stage, "header")

    def test_bad_magic(self):
        with self.assertRaises(InvalidFormatError) as cm:
            parse_xar_header(pack_header(10, 20, 1, magic=b"\x1f\x8b\x08\x00"))
        self.assertIn("not a XAR file", str(cm.exception))

    def test_header_size_too_small(self):
        with self.assertRaises(InvalidFormatError):
            parse_xar_header(pack_header(10, 20, 1, header_size=20))

    def test_long_header_is_accepted(self):
        header = parse_xar_header(pack_header(10, 20, 3, header_size=64))
        self.assertEqual(header.header_size, 64)
        self.assertEqual(header.heap_start, 74)

    def test_hash_algorithm_new(self):
        self.assertIsNone(HashAlgorithm.NONE.new())
        self.assertEqual(HashAlgorithm.MD5.new().name, "md5")
        self.assertEqual(HashAlgorithm.SHA512.new().digest_size, 64)


class HashingReaderTest(unittest.TestCase):

    def test_digests_what_is_read(self):
        h1 = hashlib.sha256()
        h2 = hashlib.md5()
        reader = HashingReader(io.BytesIO(b"hello world"), h1, None, h2)

        self.assertEqual(reader.read(5), b"hello")
        self.assertEqual(reader.read(), b" world")
        self.assertEqual(reader.read(), b"")
        self.assertEqual(reader.bytes_read, 11)
        self.assertEqual(h1.digest(), hashlib.sha256(b"hello world").digest())
        self.assertEqual(h2.digest(), hashlib.md5(b"hello world").digest())

    def test_read_exactly_stops_at_end_of_stream(self):
        reader = HashingReader(io.BytesIO(b"abc"))
        self.assertEqual(b"".join(reader.read_exactly(10)), b"abc")
        self.assertEqual(list(reader.read_exactly(0)), [])

    def test_wrappers_compose(self):
        outer = hashlib.sha1()
        inner = hashlib.sha1()
        reader = HashingReader(HashingReader(io.BytesIO(b"x" * 100), outer), inner)
        self.assertEqual(b"".join(reader.read_exactly(40)), b"x" * 40)
        self.assertEqual(outer.digest(), inner.digest())


class XarTocTest(unittest.TestCase):
    """Test TOC decompression and parsing."""

    def test_reads_entries(self):
        data = build_xar([
            ("Distribution", "<x/>"),
            ("app.pkg/Bom", b"\x00" * 10, "none"),
            ("app.pkg/PackageInfo", "<pkg-info/>", "bzip2"),
            ("Resources/en.lproj/Welcome.rtf", "{\\rtf1}"),
        ])
        header = parse_xar_header(data)
        toc = read_xar_toc(toc_stream(data), header)

        self.assertEqual(
            [entry.path for entry in toc.files],
            ["Distribution", "app.pkg", "app.pkg/Bom", "app.pkg/PackageInfo",
             "Resources", "Resources/en.lproj",
             "Resources/en.lproj/Welcome.rtf"])
        self.assertIsNone(toc.find("app.pkg").data)
        bom = toc.find("app.pkg/Bom")
        self.assertEqual(bom.name, "Bom")
        self.assertEqual(bom.data.length, 10)
        self.assertEqual(bom.data.size, 10)
        self.assertEqual(bom.data.encoding, "application/octet-stream")
        self.assertEqual(toc.find("app.pkg/PackageInfo").data.encoding,
                         "application/x-bzip2")
        self.assertIsNone(toc.find("PackageInfo"))
        self.assertFalse(toc.is_signed)

    def test_signature_presence(self):
        for kind in ("signature", "x-signature"):
            with self.subTest(kind=kind):
                data = build_xar([("Distribution", "<x/>")], signature=kind)
                toc = read_xar_toc(toc_stream(data), parse_xar_header(data))
                self.assertTrue(toc.is_signed)
                self.assertEqual(toc.has_signature, kind == "signature")
                self.assertEqual(toc.has_x_signature, kind == "x-signature")

    def test_digest_covers_compressed_toc(self):
        for algo in (HashAlgorithm.SHA1, HashAlgorithm.MD5,
                     HashAlgorithm.SHA256, HashAlgorithm.SHA512):
            with self.subTest(algo=algo):
                data = build_xar([("Distribution", "<x/>")], hash_algo=algo)
                header = parse_xar_header(data)
                compressed = data[header.header_size:header.heap_start]

                toc = read_xar_toc(toc_stream(data), header, compute_digest=True)
                self.assertEqual(
                    toc.digest, hashlib.new(algo.hashlib_name, compressed).hexdigest())
                # The writer stores the same checksum at the start of the heap.
                stored = data[header.heap_start:header.heap_start + algo.new().digest_size]
                self.assertEqual(toc.digest, stored.hex())

    def test_no_digest_unless_requested(self):
        data = build_xar([("Distribution", "<x/>")])
        toc = read_xar_toc(toc_stream(data), parse_xar_header(data))
        self.assertIsNone(toc.digest)

    def test_no_digest_for_hash_none(self):
        data = build_xar([("Distribution", "<x/>")], hash_algo=HashAlgorithm.NONE)
        toc = read_xar_toc(toc_stream(data), parse_xar_header(data), compute_digest=True)
        self.assertIsNone(toc.digest)

    def test_truncated_toc(self):
        data = build_xar([("Distribution", "<x/>")])
        header = parse_xar_header(data)
        truncated = data[:header.header_size + header.toc_compressed_len // 2]
        with self.assertRaises(CorruptTOCError) as cm:
            read_xar_toc(toc_stream(truncated), header)
        self.assertIn("unexpected EOF", str(cm.exception))
        self.assertEqual(cm.exception.stage, "toc")

    def test_zero_length_toc(self):
        data = pack_header(0, 0, HashAlgorithm.SHA1)
        with self.assertRaises(CorruptTOCError):
            read_xar_toc(toc_stream(data), parse_xar_header(data))

    def test_toc_is_not_zlib(self):
        garbage = b"this is not a zlib stream"
        data = pack_header(len(garbage), 100, HashAlgorithm.SHA1) + garbage
        with self.assertRaises(CorruptTOCError) as cm:
            read_xar_toc(toc_stream(data), parse_xar_header(data))
        self.assertIn("decompressing TOC", str(cm.exception))

    def test_size_mismatch_is_logged(self):
        data = assemble_xar("<xar><toc/></xar>", toc_uncompressed_len=1)
        with self.assertLogs("xar_tools.lib.xar_toc", level="WARNING") as logs:
            read_xar_toc(toc_stream(data), parse_xar_header(data))
        self.assertIn("header declares 1", logs.output[0])

    def test_lenient_parsing(self):
        toc = parse_toc_xml(
            b"<xar><toc><x-signature style='RSA'>&undefined;</x-signature>"
            b"<file id='1'><name>Distribution &copy;</name></file>"
            b"</toc></xar>")
        self.assertTrue(toc.has_x_signature)
        self.assertEqual(len(toc.files), 1)
        self.assertTrue(toc.files[0].name.startswith("Distribution"))

    def test_bare_toc_root(self):
        data = build_xar([("Distribution", "<x/>")], root_tag="toc", signature="signature")
        toc = read_xar_toc(toc_stream(data), parse_xar_header(data))
        self.assertTrue(toc.has_signature)
        self.assertIsNotNone(toc.find("Distribution"))

    def test_missing_toc_element(self):
        with self.assertRaises(MalformedXMLError) as cm:
            parse_toc_xml(b"<xar><files/></xar>")
        self.assertEqual(cm.exception.stage, "toc")

    def test_not_xml(self):
        with self.assertRaises(MalformedXMLError):
            parse_toc_xml(b"\x00\x01\x02 definitely not xml")

    def test_bad_offset(self):
        with self.assertRaises(MalformedXMLError):
            parse_toc_xml(
                b"<xar><toc><file><name>Distribution</name>"
                b"<data><offset>twelve</offset></data></file></toc></xar>")

    def test_missing_data_fields_default_to_zero(self):
        toc = parse_toc_xml(
            b"<xar><toc><file><name>Distribution</name><data/></file></toc></xar>")
        self.assertEqual(toc.files[0].data, DataDescriptor(0, 0, 0, ""))


class XarHeapTest(unittest.TestCase):
    """Test heap slicing and entry decoding."""

    CONTENT = b"<installer-gui-script/>" * 20

    def test_encoding_from_style(self):
        cases = [
            ("application/x-gzip", Encoding.ZLIB),
            ("application/x-bzip2", Encoding.BZIP2),
            ("application/octet-stream", Encoding.NONE),
            ("", Encoding.NONE),
            (None, Encoding.NONE),
            ("application/x-lzma", Encoding.UNKNOWN),
            ("application/x-xz", Encoding.UNKNOWN),
        ]
        for style, expected in cases:
            with self.subTest(style=style):
                self.assertIs(encoding_from_style(style), expected)

    def test_decodes_each_codec(self):
        stored = {
            "application/x-gzip": zlib.compress(self.CONTENT),
            "application/x-bzip2": bz2.compress(self.CONTENT),
            "application/octet-stream": self.CONTENT,
        }
        for style, blob in stored.items():
            with self.subTest(style=style):
                heap = b"padding!" + blob + b"trailer"
                data = DataDescriptor(offset=8, length=len(blob),
                                      size=len(self.CONTENT), encoding=style)
                self.assertEqual(read_heap_entry(heap, data), self.CONTENT)

    def test_unknown_encoding_returns_stored_bytes(self):
        data = DataDescriptor(0, 5, 5, "application/x-lzma")
        with self.assertLogs("xar_tools.lib.xar_heap", level="WARNING"):
            self.assertEqual(read_heap_entry(b"abcdefgh", data), b"abcde")

    def test_out_of_range(self):
        heap = b"0123456789"
        self.assertEqual(slice_heap(heap, 8, 2), b"89")
        for offset, length in [(8, 3), (11, 0), (-1, 2), (0, -1)]:
            with self.subTest(offset=offset, length=length):
                with self.assertRaises(TruncatedArchiveError) as cm:
                    slice_heap(heap, offset, length)
                self.assertEqual(cm.exception.stage, "heap")

    def test_broken_zlib(self):
        blob = zlib.compress(self.CONTENT)
        for raw in (b"garbage!", blob[:len(blob) // 2], b""):
            with self.subTest(raw=raw[:8]):
                data = DataDescriptor(0, len(raw), 0, "application/x-gzip")
                with self.assertRaises(UnsupportedEncodingError):
                    read_heap_entry(raw, data)

    def test_x_gzip_is_not_a_gzip_file(self):
        raw = gzip.compress(self.CONTENT)
        data = DataDescriptor(0, len(raw), len(self.CONTENT), "application/x-gzip")
        with self.assertRaises(UnsupportedEncodingError):
            read_heap_entry(raw, data)

    def test_broken_bzip2(self):
        blob = bz2.compress(self.CONTENT)
        for raw in (b"BZh9garbage", blob[:len(blob) // 2]):
            with self.subTest(raw=raw[:8]):
                data = DataDescriptor(0, len(raw), 0, "application/x-bzip2")
                with self.assertRaises(UnsupportedEncodingError):
                    read_heap_entry(raw, data)


if __name__ == "__main__":
    unittest.main()
