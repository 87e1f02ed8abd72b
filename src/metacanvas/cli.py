"""CLI entry point for MetaCanvas."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from metacanvas import __version__, logger
from metacanvas.async_runner import run_async
from metacanvas.canvas import CanvasStore
from metacanvas.dependencies import ensure_cli_dependencies_for_extract, ensure_package_dependencies
from metacanvas.exceptions import ExtractionError, PackageError
from metacanvas.logging import configure_logging
from metacanvas.settings import get_settings

if TYPE_CHECKING:
    from metacanvas.settings import Settings


def _positive_int(value: str) -> int:
    """Parse a strictly positive integer CLI value.

    Args:
        value (str): CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not an integer of at least 1.

    Returns:
        int: Parsed value.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from exc  # noqa: TRY003
    if parsed < 1:
        raise argparse.ArgumentTypeError("must be at least 1")  # noqa: TRY003
    return parsed


def build_parser() -> argparse.ArgumentParser:
    """Create the command-line parser.

    Returns:
        argparse.ArgumentParser: The configured argument parser.
    """
    parser = argparse.ArgumentParser(prog="metacanvas")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command")

    extract_parser = subparsers.add_parser("extract", help="Fill schema metadata fields from a free-text description")
    source = extract_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--text", default=None, help="Source text")
    source.add_argument("--input", type=Path, default=None, dest="input_path", help="UTF-8 source text file")
    extract_parser.add_argument("--output", type=Path, default=None, dest="output_path")
    extract_parser.add_argument("--schema-dir", type=Path, default=None, dest="schema_dir")
    extract_parser.add_argument(
        "--content-type",
        default=None,
        dest="content_type",
        help="Special schema file to use instead of detecting one, e.g. event.json",
    )
    extract_parser.add_argument("--max-workers", type=_positive_int, default=None, dest="max_workers")
    extract_parser.add_argument("--geocode", action="store_true", help="Add coordinates to places with an address")

    return parser


def _read_source_text(args: argparse.Namespace) -> str:
    """Return the source text from `--text` or `--input`.

    Raises:
        ExtractionError: If the input file cannot be read or the text is blank.
    """
    if args.input_path is not None:
        try:
            text = args.input_path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ExtractionError(message=f"Cannot read input file {args.input_path}: {exc}") from exc
    else:
        text = args.text or ""
    if not text.strip():
        raise ExtractionError(message="Source text is empty")
    return text.strip()


async def _run_extract(args: argparse.Namespace, settings: Settings, source_text: str) -> dict[str, Any]:
    store = CanvasStore.from_settings(settings, schema_dir=args.schema_dir, max_workers=args.max_workers)
    try:
        state = await store.start_extraction(source_text, content_type=args.content_type)
        if not state.core_fields:
            raise ExtractionError(message="No fields could be loaded from the schema directory")
        return await store.export_metadata(geocode=args.geocode)
    finally:
        await settings.aclose_httpx_clients()


def persist_metadata(metadata: dict[str, Any], path: Path) -> None:
    """Persist the metadata document as JSON.

    Args:
        metadata (dict[str, Any]): Metadata document.
        path (Path): Output path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(metadata, ensure_ascii=False, indent=2), encoding="utf-8")


def main(argv: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        argv (list[str] | None): Arguments; defaults to `sys.argv[1:]`.

    Returns:
        int: Exit code (0 for success, 1 for error, 130 when interrupted).
    """
    settings = get_settings()
    configure_logging(settings=settings)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "extract":
        parser.print_help()
        return 0

    ensure_package_dependencies()
    ensure_cli_dependencies_for_extract()

    try:
        source_text = _read_source_text(args)
        metadata = run_async(_run_extract(args, settings, source_text))
    except PackageError:
        logger.exception("Extraction failed")
        return 1
    except KeyboardInterrupt:
        logger.info("Extraction aborted by user")
        return 130
    except Exception:
        logger.exception("Unexpected error during extraction")
        return 1

    if args.output_path is None:
        sys.stdout.write(json.dumps(metadata, ensure_ascii=False, indent=2) + "\n")
    else:
        persist_metadata(metadata, args.output_path)
        logger.info("Extraction completed", extra={"output_path": str(args.output_path)})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
