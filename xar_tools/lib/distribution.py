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
"""Parser for the Distribution document of a macOS product archive.

The Distribution file (root element usually <installer-gui-script>) is
what Installer.app reads to present a product. Only a handful of its
elements matter for cataloging:

    <title>Example</title>
    <product id="com.example.product" version="1.2.3"/>
    <pkg-ref id="com.example.pkg" version="1.2.3">
      <bundle-version><bundle path="Example.app"/></bundle-version>
      <must-close><app id="com.example.app"/></must-close>
    </pkg-ref>
    <bundle-version><bundle path="Example.app"/></bundle-version>
    <must-close><app id="com.example.app"/></must-close>

Name, version and bundle identifier are each taken from the first rule in
an ordered list that yields a non-empty value. Only top-level
<bundle-version> and <must-close> elements are consulted; the copies nested
in <pkg-ref> are parsed but not used.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence, Tuple

from xar_tools.lib.xml_parse import parse_xml

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Bundle:
    path: str = ""


@dataclass(frozen=True)
class BundleVersion:
    bundles: List[Bundle] = field(default_factory=list)


@dataclass(frozen=True)
class App:
    id: str = ""


@dataclass(frozen=True)
class MustClose:
    apps: List[App] = field(default_factory=list)


@dataclass(frozen=True)
class Product:
    id: str = ""
    version: str = ""


@dataclass(frozen=True)
class PkgRef:
    id: str = ""
    version: str = ""
    bundle_versions: List[BundleVersion] = field(default_factory=list)
    must_close: MustClose = field(default_factory=MustClose)


@dataclass(frozen=True)
class DistributionDocument:
    title: str = ""
    product: Product = field(default_factory=Product)
    pkg_refs: List[PkgRef] = field(default_factory=list)
    bundle_versions: List[BundleVersion] = field(default_factory=list)
    must_close: MustClose = field(default_factory=MustClose)


# ============================================================================
# Parsing
# ============================================================================


def _bundle_versions(element) -> List[BundleVersion]:
    return [
        BundleVersion(bundles=[
            Bundle(path=b.get("path", "")) for b in bv.findall("bundle")
        ])
        for bv in element.findall("bundle-version")
    ]


def _must_close(element) -> MustClose:
    # Repeated <must-close> elements add to the same app list.
    return MustClose(apps=[
        App(id=app.get("id", "")) for app in element.findall("must-close/app")
    ])


def _title(root) -> str:
    title_elem = root.find("title")
    if title_elem is None:
        return ""
    return "".join(title_elem.itertext())


def parse_distribution(raw: bytes) -> DistributionDocument:
    """Parse Distribution XML bytes into a DistributionDocument."""
    root = parse_xml(raw, "Distribution", stage="distribution")

    product_elem = root.find("product")
    product = Product()
    if product_elem is not None:
        product = Product(
            id=product_elem.get("id", ""),
            version=product_elem.get("version", ""),
        )

    pkg_refs = [
        PkgRef(
            id=ref.get("id", ""),
            version=ref.get("version", ""),
            bundle_versions=_bundle_versions(ref),
            must_close=_must_close(ref),
        )
        for ref in root.findall("pkg-ref")
    ]

    return DistributionDocument(
        title=_title(root),
        product=product,
        pkg_refs=pkg_refs,
        bundle_versions=_bundle_versions(root),
        must_close=_must_close(root),
    )


# ============================================================================
# Field derivation
# ============================================================================

Rule = Tuple[str, Callable[[DistributionDocument], str]]


def _first_bundle_path(d: DistributionDocument) -> str:
    if d.bundle_versions and d.bundle_versions[0].bundles:
        return d.bundle_versions[0].bundles[0].path
    return ""


def _first_must_close_app(d: DistributionDocument) -> str:
    if d.must_close.apps:
        return d.must_close.apps[0].id
    return ""


def _first_pkg_ref_id(d: DistributionDocument) -> str:
    return d.pkg_refs[0].id if d.pkg_refs else ""


def _first_pkg_ref_version(d: DistributionDocument) -> str:
    return d.pkg_refs[0].version if d.pkg_refs else ""


NAME_RULES: Sequence[Rule] = (
    ("bundle-version/bundle@path", _first_bundle_path),
    ("title", lambda d: d.title),
    ("product@id", lambda d: d.product.id),
    ("pkg-ref@id", _first_pkg_ref_id),
)

BUNDLE_IDENTIFIER_RULES: Sequence[Rule] = (
    ("must-close/app@id", _first_must_close_app),
    ("product@id", lambda d: d.product.id),
    ("pkg-ref@id", _first_pkg_ref_id),
)

VERSION_RULES: Sequence[Rule] = (
    ("product@version", lambda d: d.product.version),
    ("pkg-ref@version", _first_pkg_ref_version),
)


def first_match(d: DistributionDocument, rules: Sequence[Rule], what: str = "") -> str:
    """Return the first non-empty, stripped value produced by ``rules``."""
    for source, extract in rules:
        value = (extract(d) or "").strip()
        if value:
            logger.debug("%s taken from %s: %r", what or "value", source, value)
            return value
    return ""


def derive_name(d: DistributionDocument) -> str:
    return first_match(d, NAME_RULES, "name")


def derive_bundle_identifier(d: DistributionDocument) -> str:
    return first_match(d, BUNDLE_IDENTIFIER_RULES, "bundle identifier")


def derive_version(d: DistributionDocument) -> str:
    return first_match(d, VERSION_RULES, "version")


def metadata_from_distribution(raw: bytes) -> dict:
    """Parse Distribution XML and derive its cataloging fields.

    Returns a dict with keys: name, version, bundle_identifier.
    """
    d = parse_distribution(raw)
    return {
        "name": derive_name(d),
        "version": derive_version(d),
        "bundle_identifier": derive_bundle_identifier(d),
    }
