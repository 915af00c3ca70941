"""Environment-backed configuration.

`load_config()` reads the process environment (populated from `.env` by
python-dotenv at import time of the package) into the flat dict consumed by
`create_app`. Callers and tests override individual keys by passing a dict to
`create_app(config)`.
"""
from __future__ import annotations
from typing import Any, Dict
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw is not None else default
    except ValueError:
        return default


def load_config() -> Dict[str, Any]:
    return {
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'PUBLIC_BASE_URL': os.getenv('PUBLIC_BASE_URL', 'http://localhost:5173').rstrip('/'),
        'DEFAULT_LOCALE': os.getenv('DEFAULT_LOCALE', 'it'),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
        # Outbound mail (SMTP)
        'SMTP_HOST': os.getenv('SMTP_HOST', ''),
        'SMTP_PORT': _env_int('SMTP_PORT', 587),
        'SMTP_USERNAME': os.getenv('SMTP_USERNAME', ''),
        'SMTP_PASSWORD': os.getenv('SMTP_PASSWORD', ''),
        'SMTP_USE_TLS': _env_bool('SMTP_USE_TLS', True),
        'SMTP_TIMEOUT': _env_int('SMTP_TIMEOUT', 30),
        'MAIL_SENDER': os.getenv('MAIL_SENDER', 'noreply@localhost'),
        # Object storage (MinIO / S3 compatible)
        'STORAGE_ENDPOINT': os.getenv('STORAGE_ENDPOINT', ''),
        'STORAGE_ACCESS_KEY': os.getenv('STORAGE_ACCESS_KEY', ''),
        'STORAGE_SECRET_KEY': os.getenv('STORAGE_SECRET_KEY', ''),
        'STORAGE_BUCKET': os.getenv('STORAGE_BUCKET', 'tickets'),
        'STORAGE_SECURE': _env_bool('STORAGE_SECURE', True),
        'STORAGE_PUBLIC_URL': os.getenv('STORAGE_PUBLIC_URL', ''),
        # Check uploaded bytes with python-magic (needs the libmagic system library)
        'ATTACHMENT_SNIFF_CONTENT': _env_bool('ATTACHMENT_SNIFF_CONTENT', False),
    }

__all__ = ['load_config']
