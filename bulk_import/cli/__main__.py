from __future__ import annotations

import argparse
import contextlib
import signal
import sys
from collections.abc import Iterator
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.entities import ENTITY_SCHEMAS, get_entity_schema
from ..config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from ..db.memory import InMemoryBackend
from ..errors import DecodeError, ImportEngineError
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import EngineConfig
from ..models.processing_result import ImportReport
from ..models.schema_models import EntitySchema
from ..services.orchestrator import ReconciliationRun, fatal_report, read_source
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line
from ..tabular.decoder import decode, preview

"""CLI entrypoint.

bulk-import ENTITY FILE [--config PATH] [--dry-run] [--debug] [--inspect-data]
            [--report-json PATH] [--sheet NAME]

Flow: load .env (overriding) -> load YAML config -> connect (PostgreSQL, or the
in-memory backend with --dry-run) -> run -> SUMMARY line -> JSON report ->
flush error log.

Exit codes: 0 every row succeeded, 2 some rows failed, the run was cancelled
or a backend call failed mid-run, 1 fatal (config, unreadable file, database
connection).
"""

__all__ = [
    "EXIT_SUCCESS_ALL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_FATAL",
    "exit_code_for",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so that its connection settings win over the process environment."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="bulk-import", description="Bulk import reconciliation engine")
    p.add_argument("entity", help=f"entity type ({', '.join(sorted(ENTITY_SCHEMAS))})")
    p.add_argument("file", type=Path, help="CSV (UTF-8) or .xlsx file")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--sheet", default=None, help="worksheet name for .xlsx input")
    p.add_argument("--dry-run", action="store_true", help="Run against an empty in-memory backend")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print mapped headers & first rows then exit")
    p.add_argument("--report-json", type=Path, default=None, help="Write the import report as JSON")
    return p.parse_args(argv)


def exit_code_for(report: ImportReport) -> int:
    if report.is_fatal:
        return EXIT_FATAL
    if report.failed > 0 or report.cancelled or report.backend_failed:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


def _inspect_data(schema: EntitySchema, path: Path, sheet: str | None) -> int:
    try:
        result = decode(read_source(path, sheet), schema)
    except DecodeError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL
    print(f"FILE: {path.name} entity={schema.name} rows={result.total_rows}")
    print(f"  columns={result.columns}")
    if result.unknown_columns:
        print(f"  ignored_columns={result.unknown_columns}")
    for issue in result.issues[:5]:
        print(f"  Row {issue.line_number}: {issue.message}")
    print(preview(result).to_string())
    return EXIT_SUCCESS_ALL


def _connect(cfg: EngineConfig, schema: EntitySchema, dry_run: bool) -> Any:
    if dry_run:
        return InMemoryBackend()
    from ..db.postgres import PostgresBackend

    backend = PostgresBackend(cfg)
    backend.check_schema(schema)
    return backend


@contextlib.contextmanager
def _cancel_on_sigint(run: ReconciliationRun) -> Iterator[None]:
    """First Ctrl-C cancels the run gracefully; the second one interrupts."""
    def _handler(signum: int, frame: Any) -> None:
        signal.signal(signal.SIGINT, previous)
        run.cancel()

    try:
        previous = signal.signal(signal.SIGINT, _handler)
    except ValueError:  # not in the main thread
        yield
        return
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def main(argv: list[str] | None = None) -> int:
    # None -> sys.argv; an explicit [] stays empty (argparse then reports usage)
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)

    _load_env_file(Path(".env"), override=True)
    try:
        if args.config == DEFAULT_CONFIG_PATH and not args.config.exists():
            # no config file at the default location: built-in defaults
            cfg = EngineConfig()
        else:
            cfg = load_config(args.config)
        schema = get_entity_schema(args.entity, cfg)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.inspect_data:
        return _inspect_data(schema, args.file, args.sheet)

    try:
        backend = _connect(cfg, schema, args.dry_run)
    except (ConfigError, ImportEngineError) as e:
        logger.error(f"database: {e}")
        return EXIT_FATAL

    logger.info(f"importing {args.file} as {schema.name} mode={'dry-run' if args.dry_run else 'live'}")
    try:
        with ProgressTracker() as progress:
            run = ReconciliationRun(schema, backend, cfg, progress=progress)
            try:
                data = read_source(args.file, args.sheet)
            except DecodeError as e:
                report = fatal_report(schema.name, str(e))
            else:
                with _cancel_on_sigint(run):
                    report = run.run(data)
    finally:
        close = getattr(backend, "close", None)
        if close is not None:
            close()

    for line in report.error_lines(cfg.error_detail_limit):
        logger.warning(line)
    if report.warnings:
        logger.info(f"{len(report.warnings)} warning(s); see the JSON report for details")

    log_summary(render_summary_line(schema.name, report).removeprefix("SUMMARY "))

    if args.report_json is not None:
        args.report_json.parent.mkdir(parents=True, exist_ok=True)
        args.report_json.write_text(report.to_json(), encoding="utf-8")

    error_log = ErrorLogBuffer()
    if error_log.add_report(report, args.file.name):
        path = error_log.flush()
        logger.info(f"error log: {path}")

    return exit_code_for(report)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
