"""Install a JDK/JRE from the release catalog or list published release names."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence


def ensure_project_root_on_sys_path() -> Path:
    """Ensure the project root is importable when the script runs standalone."""

    project_root = Path(__file__).resolve().parent.parent
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)
    return project_root


ensure_project_root_on_sys_path()

from app.config import get_app_config
from app.version import get_app_version
from services.runtime.builder import build_acquisition_engine
from services.runtime.models import (
    AcquisitionRequest,
    ImageKind,
    InvalidRequestError,
    ReleaseType,
    RuntimeFetchError,
)
from services.runtime.progress import LoggingProgressReporter, ProgressBarPrinter
from services.runtime.versioning import parse_major_version, release_sort_key
from shared.logging_config import LogVerbosity, ensure_app_logging, set_file_log_verbosity

_LOGGER = logging.getLogger("runtime_fetcher.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {get_app_version()}",
    )
    parser.add_argument(
        "--log-verbosity",
        choices=[verbosity.value for verbosity in LogVerbosity],
        default=None,
        help="Minimum severity written to the log file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", help="Make a runtime available locally.")
    install.add_argument("--os", required=True, help="Operating system, eg. linux, windows, mac.")
    install.add_argument("--arch", required=True, help="Architecture, eg. x64, aarch64.")
    install.add_argument(
        "--image-kind",
        choices=[kind.value for kind in ImageKind],
        default=ImageKind.JRE.value,
        help="Install a full JDK or only a JRE.",
    )
    selector = install.add_mutually_exclusive_group(required=True)
    selector.add_argument("--major-version", type=int, help="Java feature version, eg. 16.")
    selector.add_argument("--release-name", help="Exact release name, eg. jdk-16.0.1+9.")
    install.add_argument(
        "--force-latest-check",
        action="store_true",
        help="Ask the catalog for the latest release even when one is installed.",
    )
    install.add_argument(
        "--keep-other-versions",
        action="store_true",
        help="Do not delete other installs of the same version and platform.",
    )
    install.add_argument(
        "--install-root",
        type=Path,
        default=None,
        help="Cache directory; defaults to the configured install root.",
    )
    install.add_argument(
        "--no-progress",
        action="store_true",
        help="Log download progress instead of rendering a progress bar.",
    )

    listing = subparsers.add_parser("list", help="List release names published by the catalog.")
    listing.add_argument(
        "--major-version",
        type=int,
        default=None,
        help="Only show releases of this feature version.",
    )
    listing.add_argument(
        "--early-access",
        action="store_true",
        help="List early access releases instead of GA releases.",
    )
    listing.add_argument(
        "--sort-by-version",
        action="store_true",
        help="Order names by version, newest first, instead of by release date.",
    )
    return parser.parse_args(argv)


def _run_install(args: argparse.Namespace) -> int:
    install_root = args.install_root or get_app_config().install.install_root
    request = AcquisitionRequest(
        architecture=args.arch,
        os=args.os,
        image_kind=ImageKind(args.image_kind),
        major_version=args.major_version,
        exact_release_name=args.release_name,
        force_latest_check=args.force_latest_check,
        prune_other_versions=not args.keep_other_versions,
        install_root=install_root,
    )
    progress_factory = LoggingProgressReporter if args.no_progress else ProgressBarPrinter
    engine = build_acquisition_engine(progress_factory=progress_factory)
    result = engine.acquire(request)
    for warning in result.cleanup_warnings:
        print(f"warning: could not delete {warning.path}: {warning.message}", file=sys.stderr)
    print(f"runtime-fetcher.install-path={result.install_path}")
    print(f"runtime-fetcher.runtime-home={result.runtime_home}")
    return 0


def _run_list(args: argparse.Namespace) -> int:
    release_type = ReleaseType.EARLY_ACCESS if args.early_access else ReleaseType.GENERAL_AVAILABILITY
    engine = build_acquisition_engine()
    names = engine.list_all_release_names(release_type)
    if args.major_version is not None:
        names = [name for name in names if _major_version_or_none(name) == args.major_version]
    if args.sort_by_version:
        names = sorted(names, key=release_sort_key, reverse=True)
    for name in names:
        print(name)
    return 0


def _major_version_or_none(release_name: str) -> int | None:
    try:
        return parse_major_version(release_name)
    except InvalidRequestError:
        return None


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    ensure_app_logging(console=True)
    if args.log_verbosity is not None:
        set_file_log_verbosity(args.log_verbosity)

    handlers = {"install": _run_install, "list": _run_list}
    try:
        return handlers[args.command](args)
    except RuntimeFetchError as exc:
        _LOGGER.error("runtime-fetcher %s failed: %s", args.command, exc)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
