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
"""XML parsing for documents stored inside XAR archives.

The TOC is parsed with a recovering parser because producer tools emit
undeclared entities and other small defects. Entities are never resolved
and the network is never touched, whatever the document declares.
"""

from lxml import etree

from xar_tools.lib.errors import MalformedXMLError


def _make_parser(recover):
    return etree.XMLParser(
        recover=recover,
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        remove_comments=True,
        remove_pis=True,
        huge_tree=False,
    )


def parse_xml(data: bytes, what: str, lenient: bool = False, stage: str = "toc"):
    """Parse ``data`` and return the root element.

    Raises MalformedXMLError (tagged with ``stage``) when the parser fails
    or, in lenient mode, when nothing could be recovered.
    """
    try:
        root = etree.fromstring(data, parser=_make_parser(lenient))
    except (etree.XMLSyntaxError, ValueError) as e:
        raise MalformedXMLError(f"decoding {what}: {e}", stage=stage) from e
    if root is None:
        raise MalformedXMLError(f"decoding {what}: no XML content", stage=stage)
    return root


def child_text(element, tag: str) -> str:
    """Return the stripped text of the first ``tag`` child, or ""."""
    child = element.find(tag)
    if child is None or child.text is None:
        return ""
    return child.text.strip()
