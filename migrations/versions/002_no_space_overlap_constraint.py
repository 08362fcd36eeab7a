"""DB-level exclusion constraint against overlapping Confirmed reservations.

The application locks the space row and the overlapping reservation rows
before inserting; this constraint holds even if that code is bypassed.
A violation surfaces as ExclusionViolation, which the engine reports as a
booking conflict.

Revision ID: 002_no_space_overlap_constraint
Revises: 001_initial_schema
Create Date: 2026-10-12
"""
from __future__ import annotations

from pathlib import Path

from alembic import op

revision = "002_no_space_overlap_constraint"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None

_SQL_FILE = Path(__file__).resolve().parent.parent / "sql" / "002_no_space_overlap_constraint.sql"


def upgrade() -> None:
    op.execute(_SQL_FILE.read_text())


def downgrade() -> None:
    op.execute("ALTER TABLE reservations DROP CONSTRAINT IF EXISTS no_space_overlap")
    # btree_gist is kept: other indexes may depend on it.
