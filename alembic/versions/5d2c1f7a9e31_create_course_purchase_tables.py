"""create course purchase tables

Revision ID: 5d2c1f7a9e31
Revises:
Create Date: 2026-10-19 10:12:44.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision: str = '5d2c1f7a9e31'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sqlmodel.AutoString(), nullable=False),
        sa.Column("last_name", sqlmodel.AutoString(), nullable=False),
        sa.Column("username", sqlmodel.AutoString(), nullable=False),
        sa.Column("email", sqlmodel.AutoString(), nullable=False),
        sa.Column("password", sqlmodel.AutoString(), nullable=False),
        sa.Column("role", sqlmodel.AutoString(), nullable=False),
        sa.Column("can_login", sa.Boolean(), nullable=False),
        sa.Column("photo_url", sqlmodel.AutoString(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_email", "user", ["email"])

    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sqlmodel.AutoString(), nullable=False),
        sa.Column("subtitle", sqlmodel.AutoString(), nullable=True),
        sa.Column("description", sqlmodel.AutoString(), nullable=True),
        sa.Column("category", sqlmodel.AutoString(), nullable=True),
        sa.Column("level", sqlmodel.AutoString(), nullable=True),
        sa.Column("thumbnail", sqlmodel.AutoString(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "lecture",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("title", sqlmodel.AutoString(), nullable=False),
        sa.Column("video_url", sqlmodel.AutoString(), nullable=True),
        sa.Column("is_preview_free", sa.Boolean(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_index("ix_lecture_course_id", "lecture", ["course_id"])

    op.create_table(
        "coursepurchase",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", sqlmodel.AutoString(), nullable=False),
        sa.Column("payment_id", sqlmodel.AutoString(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_coursepurchase_user_id", "coursepurchase", ["user_id"])
    op.create_index("ix_coursepurchase_course_id", "coursepurchase", ["course_id"])
    op.create_index("ix_coursepurchase_status", "coursepurchase", ["status"])
    op.create_index("ix_coursepurchase_payment_id", "coursepurchase", ["payment_id"], unique=True)

    op.create_table(
        "userenrollment",
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "courseroster",
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), primary_key=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "courseprogress",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("completed", sa.Boolean(), nullable=False),
        sa.Column("lecture_progress", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("user_id", "course_id", name="uq_courseprogress_user_course"),
    )
    op.create_index("ix_courseprogress_user_id", "courseprogress", ["user_id"])
    op.create_index("ix_courseprogress_course_id", "courseprogress", ["course_id"])

    op.create_table(
        "purchase_event",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("purchase_id", sa.Integer(), sa.ForeignKey("coursepurchase.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False, server_default="system"),
    )

    # indexes for fast timeline queries
    op.create_index("ix_purchase_event_purchase_id", "purchase_event", ["purchase_id"])
    op.create_index("ix_purchase_event_event_type", "purchase_event", ["event_type"])


def downgrade():
    op.drop_index("ix_purchase_event_event_type", table_name="purchase_event")
    op.drop_index("ix_purchase_event_purchase_id", table_name="purchase_event")
    op.drop_table("purchase_event")
    op.drop_table("courseprogress")
    op.drop_table("courseroster")
    op.drop_table("userenrollment")
    op.drop_table("coursepurchase")
    op.drop_table("lecture")
    op.drop_table("course")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
