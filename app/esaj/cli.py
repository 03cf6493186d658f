from __future__ import annotations

"""Command line entrypoint: ``python -m app.esaj.cli <command> ...``.

Every command prints one JSON document on stdout. Progress updates are
written to stderr as they arrive.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from .config_validation import validate_runtime_config
from .healthcheck import run_health_checks
from .progress import ProgressUpdate
from .service import DOWNLOAD_MODES, ESAJService
from .utils import set_console_stream


def _print_progress(update: ProgressUpdate) -> None:
    pct = "" if update.progress is None else f" {update.progress}%"
    print(f"[{update.stage.value}]{pct} {update.message}", file=sys.stderr, flush=True)


def _emit(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="esaj",
        description="Consulta de processos e documentos no portal e-SAJ.",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print progress to stderr.")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Locate a case by protocol number.")
    search.add_argument("protocol")

    download = sub.add_parser("download", help="Resolve or download a document.")
    download.add_argument("protocol")
    download.add_argument("document_type")
    download.add_argument("--case-url", default=None)
    download.add_argument("--mode", choices=DOWNLOAD_MODES, default="url")
    download.add_argument("--directory", type=Path, default=None)

    movements = sub.add_parser("movements", help="Extract case metadata and movements.")
    movements.add_argument("protocol")
    movements.add_argument("--case-url", default=None)

    text = sub.add_parser("text", help="Extract the text of a document.")
    text.add_argument("protocol")
    text.add_argument("document_type")
    text.add_argument("--case-url", default=None)

    sub.add_parser("health", help="Run configuration and environment checks.")
    return parser


def _run_command(args: argparse.Namespace, service: ESAJService, progress) -> dict:
    if args.command == "search":
        result = service.find_process(args.protocol, progress=progress)
        owned = result.take_page()
        if owned is not None:
            owned.close()
        return result.to_dict()
    if args.command == "download":
        return service.download_document(
            args.protocol,
            args.document_type,
            args.case_url,
            mode=args.mode,
            directory=args.directory,
            progress=progress,
        ).to_dict()
    if args.command == "movements":
        return service.extract_movements(
            args.protocol, args.case_url, progress=progress
        ).to_dict()
    return service.extract_document_text(
        args.protocol, args.document_type, args.case_url, progress=progress
    ).to_dict()


def main(
    argv: Optional[Sequence[str]] = None,
    *,
    service_factory: Callable[[], ESAJService] = ESAJService,
) -> int:
    args = build_parser().parse_args(argv)
    # stdout carries exactly one JSON document.
    set_console_stream("stderr")

    if args.command == "health":
        health = run_health_checks(entrypoint="cli")
        _emit({"ok": health.ok, "checks": health.checks})
        return 0 if health.ok else 1

    try:
        validate_runtime_config("cli")
    except ValueError as exc:
        _emit({"success": False, "error": str(exc), "errorCode": "invalid_config"})
        return 2

    progress = None if args.quiet else _print_progress
    service = service_factory()
    try:
        payload = _run_command(args, service, progress)
    finally:
        service.cleanup()

    _emit(payload)
    success = payload.get("success", payload.get("found", False))
    return 0 if success else 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
