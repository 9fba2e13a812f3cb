"""Command-line interface for building bundles."""

from __future__ import annotations

import argparse
import json
import logging
import platform
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from bundle_creator import __version__
from bundle_creator.bundle.builder import BuildOptions, BuildResult, BundleBuilder
from bundle_creator.config.namespace import build_namespace, host_os_name, sanitize_name
from bundle_creator.errors import BundleCreatorError

logger = logging.getLogger("bundle_creator")

_DESCRIPTION = (
    "Build bundle files from bundle specification files. What goes into a bundle "
    "(manifest metadata, platform binaries and extra files) is described in a "
    "bundle specification passed as command line argument."
)

# Options whose value is optional; the value must be attached (-Nexts, --no-deflate=exts).
_OPTIONAL_VALUE_FLAGS = {"-N": "--no-deflate=", "--no-deflate": "--no-deflate="}


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    raw_args = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(_normalize_optional_values(raw_args))
    _configure_logging(args.verbose, args.quiet)

    if not args.specs:
        parser.print_help()
        return 0

    os_name = sanitize_name(args.osname or host_os_name())
    os_arch = sanitize_name(args.osarch or platform.machine())
    no_deflate, store_extensions = _parse_no_deflate(args.no_deflate)

    try:
        namespace = build_namespace(
            config_files=[Path(path) for path in args.config or []],
            defines=args.define or [],
            os_name=os_name,
            os_arch=os_arch,
        )
        options = BuildOptions(
            os_name=os_name,
            os_arch=os_arch,
            output_dir=Path(args.output_dir).resolve() if args.output_dir else Path.cwd(),
            keep_bundle_dir=args.keep_bundle_dir,
            no_deflate=no_deflate,
            store_extensions=store_extensions,
        )
        builder = BundleBuilder(options, namespace)
        results = builder.build_all([Path(path) for path in args.specs])
    except BundleCreatorError as exc:
        logger.error("%s", exc)
        return 1

    _print_json(
        {
            "bundles": [_result_payload(result) for result in results],
            "logs": [f"Bundle written to {result.archive_path}" for result in results],
        }
    )
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bundle-creator",
        usage="%(prog)s [<option> ...] <file> ...",
        description=_DESCRIPTION,
    )
    parser.add_argument("specs", nargs="*", metavar="file", help="Bundle specification file (XML or YAML).")
    parser.add_argument("-o", "--output-dir", help="Directory where the bundle is saved (default: current directory).")
    parser.add_argument(
        "-k",
        "--keep-bundle-dir",
        action="store_true",
        help="Keep intermediary bundle directory.",
    )
    parser.add_argument("-n", "--osname", help="Default target operating system name (e.g., Linux).")
    parser.add_argument("-a", "--osarch", help="Default target operating system architecture (e.g., armv5tejl).")
    parser.add_argument(
        "-N",
        "--no-deflate",
        nargs="?",
        const="",
        default=None,
        metavar="extensions",
        help=(
            "Do not compress (deflate) files in bundle file. If a comma-separated list of extensions "
            "is attached (-Nso,dll or --no-deflate=so,dll), only files with these extensions are stored uncompressed."
        ),
    )
    parser.add_argument(
        "-D",
        "--define",
        action="append",
        metavar="name=value",
        help="Define a configuration property, referenced in bundle specifications as ${name}. Repeatable.",
    )
    parser.add_argument("-c", "--config", action="append", metavar="file", help="Additional YAML configuration file. Repeatable.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _normalize_optional_values(argv: List[str]) -> List[str]:
    normalized: List[str] = []
    for index, token in enumerate(argv):
        if token == "--":
            normalized.extend(argv[index:])
            break
        normalized.append(_OPTIONAL_VALUE_FLAGS.get(token, token))
    return normalized


def _parse_no_deflate(value: Optional[str]) -> tuple[bool, List[str]]:
    if value is None:
        return False, []
    extensions = [item.strip() for item in value.replace(";", ",").split(",") if item.strip()]
    if not extensions:
        return True, []
    return False, extensions


def _configure_logging(verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)
    logger.setLevel(level)


def _result_payload(result: BuildResult) -> Mapping[str, object]:
    manifest = result.manifest
    return {
        "spec_path": str(result.spec_path) if result.spec_path else None,
        "archive_path": str(result.archive_path),
        "staging_dir": str(result.staging_dir),
        "symbolic_name": manifest.symbolic_name if manifest else None,
        "version": str(manifest.version) if manifest else None,
        "checksum": {"sha256": result.sha256},
        "states": [state.value for state in result.states],
    }


def _print_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, indent=2, default=str))
