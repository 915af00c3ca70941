"""Central enum-like definitions to avoid typos in permission/service strings.
Extend cautiously; never rename codes silently, existing tokens carry them in their claims.
"""
from __future__ import annotations
from typing import List, Dict

SERVICES = ['TICKET', 'SETTINGS']

SERVICE_ACTIONS = {
    'TICKET': ['SUBMIT', 'READ', 'MANAGE', 'DELETE'],
    'SETTINGS': ['READ', 'MANAGE'],
}


def build_all_permission_codes() -> List[str]:
    codes: List[str] = []
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            codes.append(f"{svc}.{act}")
    return codes

ALL_PERMISSION_CODES = build_all_permission_codes()

# Public: anonymous intake sessions. Staff: day-to-day ticket handling. Admin: everything.
ROLE_PUBLIC = 'Public'
ROLE_PRESETS: Dict[str, List[str]] = {
    ROLE_PUBLIC: ['TICKET.SUBMIT'],
    'Staff': ['TICKET.SUBMIT', 'TICKET.READ', 'TICKET.MANAGE', 'SETTINGS.READ'],
    'Admin': ['*'],
}


def permissions_for_role(role: str) -> List[str]:
    codes = ROLE_PRESETS.get(role, [])
    if '*' in codes:
        return list(ALL_PERMISSION_CODES)
    return list(codes)
