"""Create images, tags, image_tags and focused_tags.

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("filename", sa.String(255), nullable=False),
        sa.Column("original_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("mime_type", sa.String(100)),
        sa.Column("file_size", sa.BigInteger()),
        sa.Column("file_hash", sa.String(64)),
        sa.Column("width", sa.Integer()),
        sa.Column("height", sa.Integer()),
        sa.Column("title", sa.Text()),
        sa.Column("description", sa.Text()),
        sa.Column("source_url", sa.Text()),
        sa.Column("upload_date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_images_file_hash", "images", ["file_hash"], unique=True)
    op.create_index("ix_images_source_url", "images", ["source_url"])

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("name_key", sa.String(255), nullable=False),
        sa.Column("color", sa.String(7)),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("name_key", name="uq_tags_name_key"),
    )

    op.create_table(
        "image_tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tag_id", sa.Integer(), sa.ForeignKey("tags.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("image_id", "tag_id", name="uq_image_tags_image_tag"),
    )
    op.create_index("ix_image_tags_image_id", "image_tags", ["image_id"])
    op.create_index("ix_image_tags_tag_id", "image_tags", ["tag_id"])

    op.create_table(
        "focused_tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tag_name", sa.String(255), nullable=False),
        sa.Column("name_key", sa.String(255), nullable=False),
        sa.Column("x_coordinate", sa.Float(), nullable=False),
        sa.Column("y_coordinate", sa.Float(), nullable=False),
        sa.Column("width", sa.Float()),
        sa.Column("height", sa.Float()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("idx_focused_tags_image", "focused_tags", ["image_id"])
    op.create_index("idx_focused_tags_name_key", "focused_tags", ["name_key"])


def downgrade():
    op.drop_index("idx_focused_tags_name_key", table_name="focused_tags")
    op.drop_index("idx_focused_tags_image", table_name="focused_tags")
    op.drop_table("focused_tags")
    op.drop_index("ix_image_tags_tag_id", table_name="image_tags")
    op.drop_index("ix_image_tags_image_id", table_name="image_tags")
    op.drop_table("image_tags")
    op.drop_table("tags")
    op.drop_index("ix_images_source_url", table_name="images")
    op.drop_index("ix_images_file_hash", table_name="images")
    op.drop_table("images")
