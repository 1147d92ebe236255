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
"""macOS .pkg (XAR) information tool.

This tool provides multiple ways to inspect installer packages:
- Show the product name, version, bundle identifier and SHA-256
- Dump the same summary as JSON
- List the table of contents
- Print the Distribution file
- Check for an embedded signature

Usage:
    pkg_info.py file.pkg                     # Show summary info
    pkg_info.py --json file.pkg              # Summary as JSON
    pkg_info.py --toc file.pkg               # List TOC entries
    pkg_info.py --distribution file.pkg      # Print Distribution XML
    pkg_info.py --check-signature file.pkg   # Exit 0 if signed, 2 if not
"""

import argparse
import json
import logging
import sys

from xar_tools.lib.errors import NotSignedError, XarError
from xar_tools.lib.pkg_reader import (
    DISTRIBUTION_NAME,
    check_pkg_signature,
    metadata_from_archive,
    read_xar_archive,
)
from xar_tools.lib.xar_heap import encoding_from_style

EXIT_NOT_SIGNED = 2


def format_size(size):
    """Format byte size in human-readable form."""
    if size < 1024:
        return f"{size} bytes"
    elif size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    else:
        return f"{size / (1024 * 1024):.1f} MB"


def summarize(data):
    """Return the summary dict shown by default and by --json."""
    archive = read_xar_archive(data)
    meta = metadata_from_archive(archive)
    summary = meta.to_dict()
    summary["signed"] = archive.toc.is_signed
    summary["toc_checksum"] = archive.header.hash_algo.name.lower()
    summary["size"] = len(data)
    return summary


def show_summary(summary):
    """Show a brief summary of the package."""
    print(f"Name: {summary['name'] or 'unknown'}")
    print(f"Version: {summary['version'] or '?'}")
    print(f"Bundle identifier: {summary['bundle_identifier'] or 'unknown'}")
    print(f"SHA-256: {summary['sha256']}")
    print(f"Signed: {'yes' if summary['signed'] else 'no'}")
    print(f"TOC checksum: {summary['toc_checksum']}")
    print(f"Size: {format_size(summary['size'])}")


def show_toc(data):
    """List the TOC entries with their heap location."""
    archive = read_xar_archive(data)
    print(f"{'Offset':>10}  {'Length':>10}  {'Size':>10}  {'Encoding':<8}  {'Path'}")
    print("-" * 70)
    for entry in archive.toc.files:
        if entry.data is None:
            print(f"{'-':>10}  {'-':>10}  {'-':>10}  {'-':<8}  {entry.path}/")
            continue
        d = entry.data
        encoding = encoding_from_style(d.encoding).value
        print(f"{d.offset:>10}  {d.length:>10}  {d.size:>10}  {encoding:<8}  {entry.path}")


def show_distribution(data):
    """Print the decoded Distribution file."""
    archive = read_xar_archive(data)
    contents = archive.read_file(DISTRIBUTION_NAME)
    if contents is None:
        raise XarError(f"no {DISTRIBUTION_NAME} file in package")
    sys.stdout.write(contents.decode("utf-8", errors="replace"))
    if not contents.endswith(b"\n"):
        sys.stdout.write("\n")


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="macOS installer package (.pkg) information tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s file.pkg                      Show summary info
  %(prog)s --json file.pkg               Show summary as JSON
  %(prog)s --toc file.pkg                List table of contents
  %(prog)s --distribution file.pkg       Print the Distribution XML
  %(prog)s --check-signature file.pkg    Exit 0 if signed, 2 if not
"""
    )

    parser.add_argument("pkg", help="Path to .pkg file")

    # Output modes (mutually exclusive)
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--json", "-j",
        action="store_true",
        help="Show summary as JSON"
    )
    mode.add_argument(
        "--toc", "-t",
        action="store_true",
        help="List table of contents entries"
    )
    mode.add_argument(
        "--distribution", "-d",
        action="store_true",
        help="Print the Distribution file"
    )
    mode.add_argument(
        "--check-signature", "-s",
        action="store_true",
        help="Only check for an embedded signature"
    )

    # Options
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        with open(args.pkg, "rb") as f:
            data = f.read()

        if args.check_signature:
            try:
                check_pkg_signature(data)
            except NotSignedError:
                print(f"{args.pkg}: not signed")
                return EXIT_NOT_SIGNED
            print(f"{args.pkg}: signed")
        elif args.toc:
            show_toc(data)
        elif args.distribution:
            show_distribution(data)
        elif args.json:
            print(json.dumps(summarize(data), indent=2))
        else:
            # Default: show summary
            show_summary(summarize(data))

    except FileNotFoundError:
        print(f"Error: File not found: {args.pkg}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
