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
"""Exceptions raised while reading XAR (.pkg) archives.

Every error is a ValueError, so code that already guards the other readers
with ``except ValueError`` keeps working. The ``stage`` attribute names the
part of the archive that was being decoded when the error happened.
"""


class XarError(ValueError):
    """Base class for XAR parsing failures."""

    stage = None

    def __init__(self, message, stage=None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class InvalidFormatError(XarError):
    """The data is not a XAR archive (short header or bad magic)."""

    stage = "header"


class UnsupportedHashAlgorithmError(XarError):
    """The header declares a checksum algorithm outside the known set."""

    stage = "header"

    def __init__(self, code):
        super().__init__(f"unknown hash algorithm {code}")
        self.code = code


class CorruptTOCError(XarError):
    """The compressed table of contents could not be decompressed."""

    stage = "toc"


class MalformedXMLError(XarError):
    """The TOC or Distribution document could not be parsed."""

    stage = "toc"


class TruncatedArchiveError(XarError):
    """A heap entry points past the end of the archive."""

    stage = "heap"


class UnsupportedEncodingError(XarError):
    """A heap entry with a known codec failed to decompress."""

    stage = "heap"


class NotSignedError(XarError):
    """The archive carries neither a signature nor an x-signature."""

    stage = "signature"

    def __init__(self, message="file is not signed"):
        super().__init__(message)
