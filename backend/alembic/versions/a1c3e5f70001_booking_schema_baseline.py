"""booking_schema_baseline

Revision ID: a1c3e5f70001
Revises: 
Create Date: 2026-10-19 10:00:00.000000

Baseline migration creating the booking schema from the current model
definitions: users, slot templates, slot instances, booking requests,
bookings and notifications, with their check constraints, unique
constraints and indexes.
"""
from typing import Sequence, Union
import sys
import os

# Add src directory to path to import models
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from alembic import op

# Import all models to ensure they're registered with Base.metadata
from core.database import Base
import models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f70001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create all database tables from SQLAlchemy models.

    The unique constraint on (slot_instance_id, requester_id) and the unique
    booking.request_id are part of the models, so they are created here too.
    """
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    """Drop all booking tables."""
    Base.metadata.drop_all(bind=op.get_bind())
