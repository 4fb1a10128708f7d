"""001_initial_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

Creates the full SportSync schema from the ORM models:
- users
- matches, confirmations, match_invitations
- statistics, ratings
- posts, post_likes, comments
- friendships, notifications
- match_finances, user_payments
"""
from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all tables from scratch."""
    from sportsync.database.db import Base
    from sportsync.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.create_all(bind=bind, checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    from sportsync.database.db import Base
    from sportsync.database import models  # noqa: F401

    bind = op.get_bind()
    Base.metadata.drop_all(bind=bind, checkfirst=True)
