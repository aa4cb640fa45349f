#!/usr/bin/env python3
"""
Generate documentation pages from C headers.

Usage:
    hdrdoc -i include/ -o docs/api
    hdrdoc -i include/ -i ext/include -o docs/api/core -o docs/api/ext -D HAVE_THREADS
    hdrdoc --config hdrdoc.yml --fail-on-warn

Exit status: 0 on success, 2 on configuration errors, 3 when generated
pages contain broken links, 4 when --fail-on-warn is set and warnings
were reported.
"""

import argparse
import logging
import os
import sys

from .config import OPTION_NAMES, load_config, read_config_file
from .errors import EXIT_OK, HdrdocError
from .generator import Generator

log = logging.getLogger("mkdocs.plugins.hdrdoc")

# Options holding paths; when read from a config file they are relative to it
_PATH_OPTIONS = ("inputs", "outputs", "assets_dir")


def build_parser():
    p = argparse.ArgumentParser(
        prog="hdrdoc", description="Generate API documentation pages from C header comments"
    )
    p.add_argument("-i", "--input", dest="inputs", action="append", help="Input root (repeatable)")
    p.add_argument(
        "-o",
        "--output",
        dest="outputs",
        action="append",
        help="Output root: one shared, or one per input (repeatable)",
    )
    p.add_argument("-a", "--assets", dest="assets_dir", help="Assets output directory")
    p.add_argument(
        "-D", "--define", dest="defines", action="append", help="Preprocessor flag (repeatable)"
    )
    p.add_argument(
        "--fail-on-warn",
        dest="fail_on_warn",
        action="store_true",
        default=None,
        help="Exit non-zero when any warning was reported",
    )
    p.add_argument("--ext", dest="extensions", nargs="+", help="Header extensions (default: .h)")
    p.add_argument("--page-ext", dest="page_extension", help="Generated page extension (default: .mdx)")
    p.add_argument("--anchor-map", dest="anchor_map", help="Anchor map file name inside each output root")
    p.add_argument(
        "--no-index",
        dest="index_page",
        action="store_false",
        default=None,
        help="Do not write a landing index page per output root",
    )
    p.add_argument("--source-uri", dest="source_uri", help="Source link template, e.g. .../{filename}#L{line}")
    p.add_argument("--config", help="YAML file with the same options")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    return p


def _rebase(options, base):
    for key in _PATH_OPTIONS:
        value = options.get(key)
        if isinstance(value, str):
            options[key] = os.path.join(base, value)
        elif isinstance(value, list):
            options[key] = [os.path.join(base, v) if isinstance(v, str) else v for v in value]
    return options


def collect_options(args):
    """Config file values overlaid with every flag given on the command line."""
    options = {}
    if args.config:
        options = _rebase(read_config_file(args.config), os.path.dirname(os.path.abspath(args.config)))
    for key in OPTION_NAMES:
        value = getattr(args, key)
        if value is not None:
            options[key] = value
    return options


def main(argv=None):
    args = build_parser().parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.WARNING if args.quiet else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s - %(message)s")

    try:
        config = load_config(collect_options(args), args.config)
        result = Generator(config).run()
    except HdrdocError as exc:
        for line in exc.details():
            print(f"hdrdoc: {line}" if not line.startswith(" ") else line, file=sys.stderr)
        return exc.exit_code

    print(f"hdrdoc: {len(result.pages)} pages from {result.headers} headers, {len(result.warnings)} warnings")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
