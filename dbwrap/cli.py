"""Command line entry point: catalog listings, attributes, export/import."""

import argparse
import logging
import sys
from typing import Optional

from .config import load_config
from .connection import Connection
from .errors import DbwrapError
from .log_config import setup_logging

logger = logging.getLogger("dbwrap.cli")


def build_parser() -> argparse.ArgumentParser:
    config = load_config()

    parser = argparse.ArgumentParser(prog="dbwrap", description="Database helper commands")
    parser.add_argument("--address", default=config.address,
                        help="Connection address, e.g. pgsql:host=localhost;dbname=app (default: DBWRAP_ADDRESS)")
    parser.add_argument("--user", default=config.user, help="Principal (default: DBWRAP_USER)")
    parser.add_argument("--password", default=config.password, help="Credential (default: DBWRAP_PASSWORD)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("databases", help="List databases")
    sub.add_parser("tables", help="List tables")

    info = sub.add_parser("info", help="Show driver attributes")
    info.add_argument("name", nargs="?", help="Single attribute to show")

    export = sub.add_parser("export", help="Dump the database to a .sql.gz archive")
    export.add_argument("--dest", default=".", help="Destination directory")

    restore = sub.add_parser("import", help="Restore a .sql.gz archive")
    restore.add_argument("file", help="Archive to restore")
    restore.add_argument("--no-backup", action="store_true", help="Skip the safety export")

    create = sub.add_parser("create", help="Create a database and grant the user on it")
    create.add_argument("name", help="Database name")

    return parser


def run(conn: Connection, args: argparse.Namespace) -> None:
    if args.command == "databases":
        for name in conn.databases():
            print(name)
    elif args.command == "tables":
        for name in conn.tables():
            print(name)
    elif args.command == "info":
        if args.name:
            print(conn.attributes(args.name))
        else:
            for key, value in conn.attributes().items():
                print(f"{key}: {value}")
    elif args.command == "export":
        print(conn.export(args.dest))
    elif args.command == "import":
        conn.import_(args.file, backup_first=not args.no_backup)
        print(f"Imported {args.file}")
    elif args.command == "create":
        if conn.create_database(args.name):
            print(f"Created database {args.name}")
        else:
            print(f"Database {args.name} already exists")


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    config = load_config()
    setup_logging(level=logging.DEBUG if args.verbose else config.log_level, log_dir=config.log_dir)

    try:
        with Connection(args.address, args.user, args.password,
                        default_path=config.sqlite_path) as conn:
            run(conn, args)
    except DbwrapError as e:
        logger.error("%s failed: %s", args.command, e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
