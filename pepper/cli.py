#!/usr/bin/env python3
"""
CLI de tareas programadas del motor de sincronización.

Comandos disponibles:
- auto-sync: Sincronizar actuaciones de todos los casos vinculados
- retention: Archivar (lápida) casos cerrados más antiguos que la retención
- init-db: Crear las tablas del almacén documental
- config: Mostrar la configuración activa

Uso:
    pepper-sync auto-sync
    pepper-sync retention --days 120
"""
import argparse
import json
from typing import Any, Dict, List, Optional

from pepper.core.config import get_settings, print_config
from pepper.core.database import get_session, init_db
from pepper.core.exceptions import ConfigurationException, PepperException
from pepper.core.logger import log_error, log_info
from pepper.services.registry_sync_service import RegistrySyncService


def _print_summary(title: str, summary: Dict[str, Any]) -> None:
    print("=" * 60)
    print(title)
    print("=" * 60)
    print(json.dumps(summary, indent=2, ensure_ascii=False, default=str))


def cmd_auto_sync(args) -> int:
    """Sincroniza todos los casos vinculados con la rama judicial."""
    if not get_settings().cpnu_scraper_url:
        raise ConfigurationException("CPNU_SCRAPER_URL no está configurada")

    log_info("Auto sync job started", action="cpnu_auto_sync")
    with get_session() as db:
        summary = RegistrySyncService(db).run_auto_sync()

    _print_summary("AUTO SYNC CPNU", summary)
    return 1 if summary["errors"] else 0


def cmd_retention(args) -> int:
    """Elimina lógicamente los casos cerrados antiguos."""
    settings = get_settings()
    if args.days is not None:
        settings = settings.model_copy(update={"closed_case_retention_days": args.days})

    log_info(
        "Retention job started",
        action="retention",
        retention_days=settings.closed_case_retention_days,
    )
    with get_session() as db:
        summary = RegistrySyncService(db, settings=settings).archive_closed_cases()

    _print_summary("RETENCIÓN DE CASOS CERRADOS", summary)
    return 1 if summary["errors"] else 0


def cmd_init_db(args) -> int:
    init_db()
    print("✅ Tablas creadas")
    return 0


def cmd_config(args) -> int:
    print_config()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pepper-sync",
        description="Tareas del motor de sincronización de casos",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_sync = subparsers.add_parser("auto-sync", help="Sincronizar actuaciones CPNU")
    parser_sync.set_defaults(func=cmd_auto_sync)

    parser_retention = subparsers.add_parser("retention", help="Archivar casos cerrados")
    parser_retention.add_argument(
        "--days", type=int, default=None, help="Días de retención (default: configuración)"
    )
    parser_retention.set_defaults(func=cmd_retention)

    parser_init = subparsers.add_parser("init-db", help="Crear tablas")
    parser_init.set_defaults(func=cmd_init_db)

    parser_config = subparsers.add_parser("config", help="Mostrar configuración")
    parser_config.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except PepperException as e:
        log_error(f"Job {args.command} failed", action=args.command, error=e)
        print(f"❌ {e.message}")
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
