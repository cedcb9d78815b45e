"""add quiz suggestions

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    suggestionstatus = postgresql.ENUM("pending", "reviewed", "resolved", name="suggestionstatus")
    suggestionstatus.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "suggestions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("quiz_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column(
            "attempt_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("quiz_attempts.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("suggestion_text", sa.Text(), nullable=False),
        sa.Column(
            "status",
            postgresql.ENUM("pending", "reviewed", "resolved", name="suggestionstatus", create_type=False),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_suggestions_user_id", "suggestions", ["user_id"], unique=False)
    op.create_index("ix_suggestions_quiz_id", "suggestions", ["quiz_id"], unique=False)
    op.create_index("ix_suggestions_status", "suggestions", ["status"], unique=False)
    op.create_index("ix_suggestions_created_at", "suggestions", ["created_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_suggestions_created_at", table_name="suggestions")
    op.drop_index("ix_suggestions_status", table_name="suggestions")
    op.drop_index("ix_suggestions_quiz_id", table_name="suggestions")
    op.drop_index("ix_suggestions_user_id", table_name="suggestions")
    op.drop_table("suggestions")

    sa.Enum(name="suggestionstatus").drop(op.get_bind(), checkfirst=True)
