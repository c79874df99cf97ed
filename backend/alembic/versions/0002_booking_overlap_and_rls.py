# backend/alembic/versions/0002_booking_overlap_and_rls.py
"""Booking overlap exclusion and row-level security policies

Revision ID: 0002_booking_overlap_and_rls
Revises: 0001_booking_core
Create Date: 2026-10-19 00:00:01.000000

Two storage-level guarantees the application relies on:

- An exclusion constraint rejects any two active (pending or confirmed)
  bookings of one professional whose [start_at, end_at) windows overlap. The
  unique start index from 0001 covers the equal-start case on every backend;
  this constraint covers partial overlaps on Postgres.
- Row-level security scoped to the caller. Scoped sessions set
  ``request.jwt.claims`` and the ``authenticated`` role per transaction; the
  service-level role bypasses these policies.

Postgres only; other dialects skip this revision.
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_booking_overlap_and_rls"
down_revision: Union[str, None] = "0001_booking_core"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CALLER_ROLE = "authenticated"

_CALLER_SUB = "(current_setting('request.jwt.claims', true)::json ->> 'sub')"
_OWNS_PROFESSIONAL = (
    "professional_id IN (SELECT p.id FROM professionals p WHERE p.user_id = "
    + _CALLER_SUB
    + ")"
)

# table -> (policy name, USING / WITH CHECK expression, commands)
_POLICIES: dict[str, list[tuple[str, str, str]]] = {
    "professionals": [
        ("professionals_self", f"user_id = {_CALLER_SUB}", "ALL"),
    ],
    "external_accounts": [
        ("external_accounts_owner", _OWNS_PROFESSIONAL, "ALL"),
    ],
    "services": [
        ("services_owner", _OWNS_PROFESSIONAL, "ALL"),
        ("services_public_read", "is_active", "SELECT"),
    ],
    "working_hours": [
        ("working_hours_owner", _OWNS_PROFESSIONAL, "ALL"),
    ],
    "blocked_intervals": [
        ("blocked_intervals_owner", _OWNS_PROFESSIONAL, "ALL"),
    ],
    "bookings": [
        ("bookings_client", f"client_id = {_CALLER_SUB}", "ALL"),
        ("bookings_professional_read", _OWNS_PROFESSIONAL, "SELECT"),
    ],
    "payment_transactions": [
        ("payment_transactions_professional_read", _OWNS_PROFESSIONAL, "SELECT"),
    ],
}


def _is_postgres() -> bool:
    bind = op.get_bind()
    return bind is not None and bind.dialect.name == "postgresql"


def _create_extension_prefer_extensions_schema(extension_name: str) -> None:
    """Create extension using extensions schema when available."""
    op.execute(
        f"""
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_extension WHERE extname = '{extension_name}') THEN
                IF EXISTS (SELECT 1 FROM pg_namespace WHERE nspname = 'extensions') THEN
                    EXECUTE 'CREATE EXTENSION IF NOT EXISTS {extension_name} WITH SCHEMA extensions';
                ELSE
                    EXECUTE 'CREATE EXTENSION IF NOT EXISTS {extension_name}';
                END IF;
            END IF;
        END$$;
        """
    )


def _ensure_caller_role() -> None:
    op.execute(
        f"""
        DO $$
        BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{CALLER_ROLE}') THEN
                EXECUTE 'CREATE ROLE {CALLER_ROLE} NOLOGIN';
            END IF;
        END$$;
        """
    )


def upgrade() -> None:
    if not _is_postgres():
        print("Skipping overlap constraint and RLS (not Postgres)")
        return

    _create_extension_prefer_extensions_schema("btree_gist")
    op.execute(
        """
        ALTER TABLE bookings
          ADD CONSTRAINT bookings_no_overlap_per_professional
          EXCLUDE USING gist (
            professional_id WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
          )
          WHERE (status IN ('pending', 'confirmed'))
        """
    )

    _ensure_caller_role()
    for table_name, policies in _POLICIES.items():
        op.execute(f"ALTER TABLE public.{table_name} ENABLE ROW LEVEL SECURITY")
        op.execute(
            f"GRANT SELECT, INSERT, UPDATE, DELETE ON public.{table_name} TO {CALLER_ROLE}"
        )
        for policy_name, expression, command in policies:
            check = f" WITH CHECK ({expression})" if command in ("ALL", "INSERT") else ""
            op.execute(
                f"CREATE POLICY {policy_name} ON public.{table_name} "
                f"FOR {command} TO {CALLER_ROLE} USING ({expression}){check}"
            )


def downgrade() -> None:
    if not _is_postgres():
        return

    for table_name, policies in _POLICIES.items():
        for policy_name, _expression, _command in policies:
            op.execute(f"DROP POLICY IF EXISTS {policy_name} ON public.{table_name}")
        op.execute(f"ALTER TABLE public.{table_name} DISABLE ROW LEVEL SECURITY")
    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS bookings_no_overlap_per_professional")
