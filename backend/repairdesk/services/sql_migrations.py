"""Apply a directory of ``*.sql`` files in file-name order.

Each file runs in its own transaction. The run stops at the first failing file;
files applied before it stay applied.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Union
import logging
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    def __init__(self, filename: str, cause: Exception):
        super().__init__(f"{filename}: {cause}")
        self.filename = filename
        self.cause = cause


def list_migration_files(directory: Union[str, Path]) -> List[Path]:
    path = Path(directory)
    if not path.is_dir():
        raise FileNotFoundError(f"migrations directory not found: {path}")
    return sorted((p for p in path.iterdir() if p.is_file() and p.suffix == '.sql'), key=lambda p: p.name)


def split_statements(sql: str) -> List[str]:
    """Split on ';' at line ends. Statements with embedded semicolons must stay on one line."""
    statements, current = [], []
    for line in sql.splitlines():
        stripped = line.strip()
        if not current and (not stripped or stripped.startswith('--')):
            continue
        current.append(line)
        if stripped.endswith(';'):
            statements.append('\n'.join(current).strip().rstrip(';'))
            current = []
    tail = '\n'.join(current).strip()
    if tail:
        statements.append(tail)
    return statements


def apply_migrations(engine: Engine, directory: Union[str, Path]) -> List[str]:
    """Apply every migration file; returns the names applied. Raises MigrationError on the first failure."""
    files = list_migration_files(directory)
    logger.info('Found %d migration files', len(files))
    applied: List[str] = []
    for f in files:
        logger.info('Applying migration: %s', f.name)
        sql = f.read_text(encoding='utf-8')
        try:
            with engine.begin() as conn:
                for statement in split_statements(sql):
                    conn.exec_driver_sql(statement)
        except SQLAlchemyError as e:
            logger.error('Error applying migration %s: %s', f.name, e)
            raise MigrationError(f.name, e) from e
        logger.info('Successfully applied migration: %s', f.name)
        applied.append(f.name)
    logger.info('All migrations applied successfully')
    return applied

__all__ = ['apply_migrations', 'list_migration_files', 'split_statements', 'MigrationError']
