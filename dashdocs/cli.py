"""
DashDocs CLI — operator commands.

Commands:
- dashdocs init-db   — Create the document store tables
- dashdocs health    — Check database, Redis broker and file store
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

from dashdocs.engine.errors import ConfigError

logger = logging.getLogger("dashdocs.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="dashdocs",
        description="DashDocs — document access control and lifecycle engine",
    )
    parser.add_argument(
        "--config", default=None, help="Path to dashdocs.yaml (default: $DASHDOCS_CONFIG or auto-discovered)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create the document store tables")
    subparsers.add_parser("health", help="Check collaborator connectivity")

    args = parser.parse_args(argv)

    if args.command == "init-db":
        return cmd_init_db(args)
    elif args.command == "health":
        return cmd_health(args)
    else:
        parser.print_help()
        return 0


def _load(args: argparse.Namespace):
    from dashdocs.engine.config import load_config
    from dashdocs.engine.logging import configure_logging

    config = load_config(args.config)
    configure_logging(config.logging)
    return config


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create every table the engine owns or reads."""
    from dashdocs.db.session import close_db, init_db
    from sqlalchemy.exc import SQLAlchemyError

    try:
        config = _load(args)
    except ConfigError as e:
        print(f"[ERROR] {e.message}", file=sys.stderr)
        for detail in e.context.get("validation_errors") or []:
            print(f"  - {detail}", file=sys.stderr)
        return 1

    try:
        init_db(config.database, create_tables=True)
    except SQLAlchemyError as e:
        print(f"[ERROR] Could not create tables: {e}", file=sys.stderr)
        return 1
    finally:
        close_db()

    print(f"[OK] Document store tables created ({config.environment})")
    return 0


def cmd_health(args: argparse.Namespace) -> int:
    """Print a JSON health summary; exit 1 unless everything is healthy."""
    from dashdocs.db.base import create_db_engine
    from dashdocs.engine.health import HealthCheckService
    from dashdocs.storage.local import LocalFileStore

    try:
        config = _load(args)
    except ConfigError as e:
        print(f"[ERROR] {e.message}", file=sys.stderr)
        return 1

    engine = create_db_engine(config.database.url)
    service = HealthCheckService()
    service.register_database_check(engine)
    if config.redis.url:
        service.register_redis_check(config.redis.url)
    service.register_file_store_check(LocalFileStore(config.storage.root_path))

    try:
        summary = service.get_health()
    finally:
        engine.dispose()

    print(json.dumps(summary, indent=2))
    return 0 if summary["status"] == "healthy" else 1


if __name__ == "__main__":
    sys.exit(main())
