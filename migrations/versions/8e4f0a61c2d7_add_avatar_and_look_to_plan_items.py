"""add avatar_id and look_id to plan items

Revision ID: 8e4f0a61c2d7
Revises: 3b1d7c9e5a20
Create Date: 2026-10-17 09:40:03.551870

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8e4f0a61c2d7"
down_revision: Union[str, Sequence[str], None] = "3b1d7c9e5a20"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column("video_plan_items", sa.Column("avatar_id", sa.Text, nullable=True))
    op.add_column("video_plan_items", sa.Column("look_id", sa.Text, nullable=True))


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_column("video_plan_items", "look_id")
    op.drop_column("video_plan_items", "avatar_id")
