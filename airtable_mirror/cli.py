"""
CLI: espejo Airtable -> SQLite con borrado reversible.

Uso recomendado:
  - `sync` como job (cron/systemd timer) para mantener el espejo al día.
  - `remove` siempre primero con --dry-run.

Variables de entorno requeridas (o en .env):
  - AIRTABLE_API_KEY
  - AIRTABLE_BASE_ID

Ejecución:
  airtable-mirror sync
  airtable-mirror sync --backup
  airtable-mirror remove --table Items --dry-run
  airtable-mirror remove --table Items --record-id recXXXX
  airtable-mirror restore recXXXX recYYYY
  airtable-mirror history recXXXX
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv
from loguru import logger

from airtable_mirror.application.services.record_filters import (
    flag_field_predicate,
    record_id_predicate,
)
from airtable_mirror.core.bootstrap import Mirror, build_mirror
from airtable_mirror.core.config import Settings, get_settings
from airtable_mirror.core.logging import configure_logging
from airtable_mirror.shared.constants.airtable_constants import ALL_TABLES, ITEMS_TABLE, WEB_TABLES
from airtable_mirror.shared.exceptions import MirrorException


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="airtable-mirror",
        description="Espejo local de una base Airtable con borrado reversible.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Descarga las tablas y actualiza el espejo.")
    sync.add_argument(
        "--backup",
        action="store_true",
        help="Respaldo completo: todas las tablas de la base (por defecto solo las de la web).",
    )
    sync.add_argument("--table", action="append", dest="tables", help="Tabla a sincronizar (repetible).")

    remove = sub.add_parser("remove", help="Borra registros en Airtable y en el espejo.")
    remove.add_argument("--table", default=ITEMS_TABLE, help=f"Tabla objetivo (por defecto {ITEMS_TABLE}).")
    remove.add_argument("--dry-run", action="store_true", help="Solo informa cuántos registros se borrarían.")
    remove.add_argument(
        "--live",
        action="store_true",
        help="Identifica candidatos con un fetch en vivo en lugar de la última exportación.",
    )
    remove.add_argument(
        "--record-id",
        action="append",
        dest="record_ids",
        help="Borra solo este id (repetible). Ignora el campo bandera.",
    )
    remove.add_argument("--flag-field", help="Campo bandera que marca registros a borrar.")

    restore = sub.add_parser("restore", help="Re-crea registros borrados desde el log de operaciones.")
    restore.add_argument("record_ids", nargs="+", help="Ids originales de Airtable.")
    restore.add_argument("--dry-run", action="store_true", help="Solo informa cuántos snapshots hay.")

    history = sub.add_parser("history", help="Muestra el historial de operaciones de un registro.")
    history.add_argument("record_id")

    return parser


def _run_sync(mirror: Mirror, args: argparse.Namespace) -> int:
    tables = args.tables or (ALL_TABLES if args.backup else WEB_TABLES)
    logger.info(f"Iniciando sync de {len(tables)} tablas...")
    run = mirror.sync.sync_tables(tables)
    for table in run.tables:
        status = f"error: {table.error}" if table.error else "ok"
        logger.info(
            f"  {table.table_name}: descargados={table.fetched}, escritos={table.written}, "
            f"nuevos={table.created}, actualizados={table.updated}, fallidos={table.failed} ({status})"
        )
    return 0


def _run_remove(mirror: Mirror, settings: Settings, args: argparse.Namespace) -> int:
    if args.record_ids:
        predicate = record_id_predicate(args.record_ids)
    else:
        predicate = flag_field_predicate(args.flag_field or settings.REMOVAL_FLAG_FIELD)

    dry_run = args.dry_run or settings.DRY_RUN
    result = mirror.removal.remove_records(args.table, predicate, dry_run=dry_run)
    if dry_run:
        logger.info(f"Dry run: {result.candidates} registros se borrarían de {args.table}")
        return 0
    for failure in result.failed_batches:
        logger.warning(f"  Lote no aplicado {failure.record_ids}: {failure.reason}")
    return 0


def _run_restore(mirror: Mirror, settings: Settings, args: argparse.Namespace) -> int:
    dry_run = args.dry_run or settings.DRY_RUN
    result = mirror.restore.restore_records(args.record_ids, dry_run=dry_run)
    if dry_run:
        logger.info(f"Dry run: {result.found} de {result.requested} registros tienen snapshot")
        return 0
    for old_id, new_id in result.restored_ids.items():
        logger.info(f"  {old_id} -> {new_id}")
    return 0


def _run_history(mirror: Mirror, args: argparse.Namespace) -> int:
    entries = mirror.operations.history(args.record_id)
    if not entries:
        logger.info(f"No hay operaciones registradas para {args.record_id}")
        return 0
    for entry in entries:
        print(
            f"#{entry.id} {entry.occurred_at.isoformat()} {entry.operation_type.value:<6} "
            f"{entry.table_name}: {len(entry.snapshot)} campos"
        )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    load_dotenv(override=False)
    try:
        settings = get_settings()
    except ValueError as e:
        # pydantic.ValidationError hereda de ValueError
        print(f"Configuración inválida: {e}", file=sys.stderr)
        return 1
    configure_logging(settings)

    try:
        mirror = build_mirror(settings, live_snapshot=getattr(args, "live", False))
    except MirrorException as e:
        logger.error(f"No se pudo inicializar el espejo: {e.message}")
        return 1

    try:
        if args.command == "sync":
            return _run_sync(mirror, args)
        if args.command == "remove":
            return _run_remove(mirror, settings, args)
        if args.command == "restore":
            return _run_restore(mirror, settings, args)
        return _run_history(mirror, args)
    except MirrorException as e:
        logger.error(f"Corrida abortada: {e.message}")
        return 1
    finally:
        mirror.close()


if __name__ == "__main__":
    raise SystemExit(main())
