from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import psycopg2

from tablecache.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from tablecache.db.batch_insert import BatchInsertError, BatchMetrics, copy_table
from tablecache.db.connection import connect, load_env_file, transaction
from tablecache.db.query import load_table, select_all_query
from tablecache.db.store import PostgresStore
from tablecache.excel.reader import SheetHeaderError, coerce_records, read_sheet_records
from tablecache.logging.error_log import ErrorLogBuffer
from tablecache.logging.init import get_logger, log_summary, setup_logging
from tablecache.models.config_models import CacheConfig, TableConfig
from tablecache.models.error_record import ErrorRecord
from tablecache.models.errors import SchemaMismatchError, UnknownRowError
from tablecache.models.table import Table
from tablecache.services.changeset import ChangeSetError, apply_change_set, load_change_set
from tablecache.services.export import to_json, to_xml
from tablecache.services.progress import ProgressTracker
from tablecache.services.reconcile import plan, reconcile_atomic
from tablecache.services.summary import render_summary_line

"""Command line entrypoint.

    python -m tablecache.cli [--config PATH] [--debug] show TABLE
    python -m tablecache.cli export TABLE --format json|xml
    python -m tablecache.cli apply TABLE CHANGES.yml [--dry-run]
    python -m tablecache.cli bulk-load TABLE FILE.xlsx [--sheet NAME]

Exit codes: 0 success, 1 fatal (config, connection, bad input),
2 reconciliation failed and was rolled back.
"""

EXIT_SUCCESS = 0
EXIT_FATAL = 1
EXIT_RECONCILE_FAILED = 2


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="tablecache", description="Disconnected table cache for PostgreSQL")
    p.add_argument("--config", default=str(DEFAULT_CONFIG_PATH), help="YAML config file")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Load a table and print its rows")
    show.add_argument("table")

    export = sub.add_parser("export", help="Load a table and print it as JSON or XML")
    export.add_argument("table")
    export.add_argument("--format", choices=["json", "xml"], default="json")

    apply = sub.add_parser("apply", help="Apply a YAML change set and reconcile it")
    apply.add_argument("table")
    apply.add_argument("changes", type=Path)
    apply.add_argument("--dry-run", action="store_true", help="Print the store operations only")

    bulk = sub.add_parser("bulk-load", help="Bulk copy a spreadsheet into a table")
    bulk.add_argument("table")
    bulk.add_argument("file", type=Path)
    bulk.add_argument("--sheet", default=0, help="Sheet name (default: first sheet)")
    bulk.add_argument("--header-row", type=int, default=0, help="Zero-based header row")
    bulk.add_argument(
        "--null-sentinel", action="append", default=None,
        help="String read as NULL (repeatable, case-insensitive)",
    )
    return p.parse_args(argv)


def _load(conn: Any, table_cfg: TableConfig) -> Table:
    schema = table_cfg.schema
    query = table_cfg.query or select_all_query(table_cfg.table, schema)
    with conn.cursor() as cur:
        return load_table(cur, schema, query, name=table_cfg.name)


def _format_row(values: dict[str, Any]) -> str:
    return ", ".join(f"{k}: {v}" for k, v in values.items())


def _cmd_show(args: argparse.Namespace, cfg: CacheConfig, table_cfg: TableConfig, conn: Any) -> int:
    table = _load(conn, table_cfg)
    for row in table:
        print(_format_row(dict(row.current_values)))
    log_summary(f"table={table_cfg.name} rows={len(table)}")
    return EXIT_SUCCESS


def _cmd_export(args: argparse.Namespace, cfg: CacheConfig, table_cfg: TableConfig, conn: Any) -> int:
    table = _load(conn, table_cfg)
    print(to_json(table) if args.format == "json" else to_xml(table))
    return EXIT_SUCCESS


def _cmd_apply(args: argparse.Namespace, cfg: CacheConfig, table_cfg: TableConfig, conn: Any) -> int:
    logger = get_logger()
    table = _load(conn, table_cfg)
    changes = load_change_set(args.changes)
    apply_change_set(table, changes)
    pending = len(table.pending_changes())
    logger.info(f"table={table_cfg.name} rows={len(table)} pending={pending}")

    if args.dry_run:
        for op in plan(table):
            print(op.describe())
        return EXIT_SUCCESS

    error_log = ErrorLogBuffer(Path(cfg.logs_dir))
    try:
        with conn.cursor() as cur, ProgressTracker(pending, description=f"Reconciling {table_cfg.name}") as progress:
            store = PostgresStore(cur, table_cfg.table, table.schema)
            result = reconcile_atomic(table, store, transaction(conn), on_operation=progress.on_operation)
    except psycopg2.Error as e:
        # commit (or rollback) itself failed; the table was already restored
        error_log.append(ErrorRecord.create(table_cfg.name, -1, "-", "TRANSACTION_FAILED", str(e).strip()))
        error_log.flush()
        raise

    error_log.append_failure(table_cfg.name, result)
    log_path = error_log.flush()
    if not result.rolled_back:
        for index, error in result.key_errors:
            logger.warning(f"reconcile: index={index} inserted without a usable key: {error}")
    if not result.succeeded:
        op = result.failed_operation.describe() if result.failed_operation else "-"
        logger.error(f"reconcile: index={result.failed_index} op={op}: {result.error}")
        if log_path is not None:
            logger.info(f"error log: {log_path}")

    summary_line = render_summary_line(table_cfg.name, pending, result)
    log_summary(summary_line[len("SUMMARY "):])
    return EXIT_SUCCESS if result.succeeded else EXIT_RECONCILE_FAILED


def _cmd_bulk_load(args: argparse.Namespace, cfg: CacheConfig, table_cfg: TableConfig, conn: Any) -> int:
    logger = get_logger()
    schema = table_cfg.schema
    records = read_sheet_records(
        args.file,
        sheet_name=args.sheet,
        header_row=args.header_row,
        null_sentinels=set(args.null_sentinel) if args.null_sentinel else None,
    )
    table = Table(schema, name=table_cfg.name)
    for record in coerce_records(records, schema):
        table.insert(record)
    logger.info(f"table={table_cfg.name} read_rows={len(table)} file={args.file.name}")

    def on_batch(metrics: BatchMetrics) -> None:
        logger.debug(f"batch rows={metrics.batch_size} elapsed_sec={metrics.elapsed_seconds:.3f}")

    with transaction(conn), conn.cursor() as cur:
        result = copy_table(cur, table_cfg.table, table, metrics_callback=on_batch)
    log_summary(f"table={table_cfg.name} inserted={result.inserted_rows}")
    return EXIT_SUCCESS


_COMMANDS = {
    "show": _cmd_show,
    "export": _cmd_export,
    "apply": _cmd_apply,
    "bulk-load": _cmd_bulk_load,
}


def main(argv: list[str] | None = None) -> int:
    # Only read sys.argv when argv is None; an explicit [] must stay empty
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(Path(args.config))
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    table_cfg = cfg.tables.get(args.table)
    if table_cfg is None:
        logger.error(f"unknown table: {args.table} (configured: {sorted(cfg.tables)})")
        return EXIT_FATAL

    handler = _COMMANDS[args.command]
    try:
        with connect(cfg.database) as conn:
            return handler(args, cfg, table_cfg, conn)
    except psycopg2.Error as e:
        logger.error(f"database: {str(e).strip()}")
    except (SchemaMismatchError, UnknownRowError) as e:
        logger.error(f"table: {e}")
    except ChangeSetError as e:
        logger.error(f"changes: {e}")
    except (SheetHeaderError, FileNotFoundError) as e:
        logger.error(f"input: {e}")
    except BatchInsertError as e:
        logger.error(f"bulk-load: {e}")
    return EXIT_FATAL
