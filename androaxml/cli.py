"""androaxml command-line interface.

Usage:
    androaxml app.apk
    androaxml --raw build/AndroidManifest.xml
    python -m androaxml -v app.apk
"""

import argparse
import sys
from typing import List, Optional

from loguru import logger

from . import __version__
from .apk import MANIFEST_ENTRY, is_zip, read_manifest
from .document import Document, decode
from .exceptions import ApkError, ResParserError

LOG_FORMAT = "{line: >4}:{level}:\t{message}"


def setup_logging(level: str) -> None:
    logger.remove()  # All configured handlers are removed
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="androaxml",
        description="Decode Android binary XML (AndroidManifest.xml) from an APK or a bare AXML file",
    )
    parser.add_argument("path", help="APK file, or a compiled AXML file")
    parser.add_argument(
        "--entry",
        default=MANIFEST_ENTRY,
        help="Entry to decode when PATH is an APK (default: %(default)s)",
    )
    parser.add_argument(
        "--raw",
        action="store_true",
        help="Also list the string pool and the resource id table",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log every chunk (DEBUG level)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"],
        help="Log level for stderr (default: WARNING)",
    )
    parser.add_argument("--version", action="version", version=__version__)
    return parser


def _load(path: str, entry: str) -> Document:
    if is_zip(path):
        return read_manifest(path, entry)
    with open(path, "rb") as fp:
        return decode(fp)


def _print_raw(document: Document) -> None:
    sb = document.string_pool
    print(sb)
    for i, s in enumerate(sb):
        print("{:08d} {}".format(i, repr(s)))
    if document.resource_ids:
        print()
        print("Resource IDs: ")
        for i, res_id in enumerate(document.resource_ids):
            print("{:08d} 0x{:08x}".format(i, res_id))
    print()


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    setup_logging(args.log_level or ("DEBUG" if args.verbose else "WARNING"))

    try:
        document = _load(args.path, args.entry)
        # lxml raises ValueError for names or text it can not serialize
        xml = document.get_xml()
    except (ApkError, ResParserError, OSError, ValueError) as e:
        logger.error("{}: {}: {}", args.path, type(e).__name__, e)
        return 1

    if args.raw:
        _print_raw(document)
    print(xml.decode("utf-8"), flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
