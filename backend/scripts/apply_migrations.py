#!/usr/bin/env python
"""Apply the SQL files in backend/sql (or --dir) to DATABASE_URL, in file-name order.

Usage:
    python backend/scripts/apply_migrations.py
    python backend/scripts/apply_migrations.py --dir path/to/sql
    python backend/scripts/apply_migrations.py --dry-run   # list the files that would run

Exits 1 on the first failing file; files applied before it stay applied.
"""
from __future__ import annotations
import os, sys, argparse, logging
from sqlalchemy import create_engine
from dotenv import load_dotenv

# Allow running from repo root
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from repairdesk.services.sql_migrations import MigrationError, apply_migrations, list_migration_files  # noqa: E402

DEFAULT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'sql'))


def parse_args(argv=None):
    p = argparse.ArgumentParser(description='Apply SQL migration files in order')
    p.add_argument('--dir', default=DEFAULT_DIR, help='Directory containing *.sql files (default: backend/sql)')
    p.add_argument('--database-url', default=None, help='Overrides DATABASE_URL')
    p.add_argument('--dry-run', action='store_true', help='List files without executing them')
    return p.parse_args(argv)


def main(argv=None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(level=os.getenv('LOG_LEVEL', 'INFO').upper(), format='%(asctime)s - %(levelname)s - %(message)s')
    log = logging.getLogger('apply_migrations')
    try:
        if args.dry_run:
            for f in list_migration_files(args.dir):
                print(f.name)
            return 0
        url = args.database_url or os.getenv('DATABASE_URL', 'sqlite:///dev.db')
        engine = create_engine(url, future=True)
        try:
            apply_migrations(engine, args.dir)
        finally:
            engine.dispose()
    except FileNotFoundError as e:
        log.error('%s', e)
        return 1
    except MigrationError as e:
        log.error('Migration failed at %s', e.filename)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
