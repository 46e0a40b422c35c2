"""create shared_files

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "shared_files",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("filename", sa.String(), nullable=False),
        sa.Column("file_path", sa.String(), nullable=False),
        sa.Column("secret_code", sa.String(), nullable=False),
        sa.Column("content_type", sa.String(), nullable=False),
        sa.Column("size", sa.Integer(), nullable=True),
        sa.Column("is_folder", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("file_count", sa.Integer(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_shared_files_title", "shared_files", ["title"], unique=True)
    op.create_index("ix_shared_files_created_at", "shared_files", ["created_at"])


def downgrade():
    op.drop_index("ix_shared_files_created_at", table_name="shared_files")
    op.drop_index("ix_shared_files_title", table_name="shared_files")
    op.drop_table("shared_files")
