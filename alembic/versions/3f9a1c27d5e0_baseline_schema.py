"""baseline schema

Revision ID: 3f9a1c27d5e0
Revises: 
Create Date: 2026-10-19 10:02:41.118204

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.engine import Connection

from cosmicds.database import Base

# revision identifiers, used by Alembic.
revision: str = "3f9a1c27d5e0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table and seed the default story."""
    bind: Connection = op.get_bind()
    Base.metadata.create_all(bind)

    stories = sa.table("stories", sa.column("name", sa.String), sa.column("display_name", sa.String))
    op.bulk_insert(stories, [{"name": "hubbles_law", "display_name": "Hubbles Law"}])


def downgrade() -> None:
    bind: Connection = op.get_bind()
    Base.metadata.drop_all(bind)
