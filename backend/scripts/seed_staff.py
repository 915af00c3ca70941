#!/usr/bin/env python
"""Idempotent seed for staff accounts.

Usage:
    python backend/scripts/seed_staff.py                      # ensure the admin from SEED_ADMIN_EMAIL exists
    python backend/scripts/seed_staff.py --email a@b.it --name Anna --role Staff
    python backend/scripts/seed_staff.py --show-users
    python backend/scripts/seed_staff.py --dry-run
"""
from __future__ import annotations
import os, sys, argparse
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from repairdesk import create_app, get_db  # noqa: E402
from repairdesk.models.authz import Base, User  # noqa: E402
from repairdesk.models import audit, setting, ticket  # noqa: E402,F401


def ensure_user(session, email: str, name: str, role: str, password: str) -> bool:
    email = email.strip().lower()
    existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing:
        return False
    user = User(name=name, email=email, role=role)
    user.set_password(password)
    session.add(user)
    session.flush()
    return True


def print_users(session):
    users = session.execute(select(User).order_by(User.id.asc())).scalars().all()
    if not users:
        print('[INFO] No users present.')
        return
    for u in users:
        print(f"{u.id:>4} | {u.role:<6} | {'active' if u.is_active else 'disabled':<8} | {u.email}")


def parse_args():
    p = argparse.ArgumentParser(description='Seed staff accounts')
    p.add_argument('--email', default=os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com'))
    p.add_argument('--name', default='Admin')
    p.add_argument('--role', default=User.ROLE_ADMIN, choices=User.ALL_ROLES)
    p.add_argument('--password', default=os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    p.add_argument('--show-users', action='store_true', help='Print users after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM users LIMIT 1'))
        except Exception:
            # Bootstrap only; in a real environment run `alembic upgrade head` first
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        created = ensure_user(session, args.email, args.name, args.role, args.password)
        if args.show_users:
            print_users(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) User would be created: {created}")
        else:
            session.commit()
            print(f"[DONE] User {args.email} {'created' if created else 'already present'}")


if __name__ == '__main__':
    main()
