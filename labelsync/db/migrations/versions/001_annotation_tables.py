"""Create annotation tables.

Revision ID: 001
Revises:
Create Date: 2026-10-17

Tables: labellers, episode_labels, frame_labels
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create annotation tables."""
    op.create_table(
        "labellers",
        sa.Column("labeller_id", sa.String(255), primary_key=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
    )

    # One row per canonical episode
    op.create_table(
        "episode_labels",
        sa.Column("org_id", sa.String(255), nullable=False),
        sa.Column("dataset_id", sa.String(512), nullable=False),
        sa.Column("episode_id", sa.String(64), nullable=False),
        sa.Column("labeller_id", sa.String(255), sa.ForeignKey("labellers.labeller_id")),
        sa.Column("quality_tag", sa.String(32)),
        sa.Column("key_notes", ARRAY(sa.Text), nullable=False, server_default="{}"),
        sa.Column("items", JSONB),
        sa.Column("arms_used", sa.String(16)),
        sa.Column("remarks", sa.Text, nullable=False, server_default=""),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.PrimaryKeyConstraint("org_id", "dataset_id", "episode_id", name="pk_episode_labels"),
        sa.CheckConstraint(
            "quality_tag IS NULL OR quality_tag IN ('high', 'medium', 'low', 'unusable')",
            name="chk_episode_quality_tag",
        ),
        sa.CheckConstraint(
            "arms_used IS NULL OR arms_used IN ('left', 'right', 'both')",
            name="chk_episode_arms_used",
        ),
    )

    # One row per labelled frame of a canonical episode
    op.create_table(
        "frame_labels",
        sa.Column("org_id", sa.String(255), nullable=False),
        sa.Column("dataset_id", sa.String(512), nullable=False),
        sa.Column("episode_id", sa.String(64), nullable=False),
        sa.Column("frame_idx", sa.Integer, nullable=False),
        sa.Column("labeller_id", sa.String(255), sa.ForeignKey("labellers.labeller_id")),
        sa.Column("phase_tags", ARRAY(sa.Text), nullable=False, server_default="{}"),
        sa.Column("issue_tags", ARRAY(sa.Text), nullable=False, server_default="{}"),
        sa.Column("notes", sa.Text, nullable=False, server_default=""),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.PrimaryKeyConstraint(
            "org_id", "dataset_id", "episode_id", "frame_idx", name="pk_frame_labels"
        ),
        sa.CheckConstraint("frame_idx >= 0", name="chk_frame_idx_non_negative"),
    )
    op.create_index(
        "idx_frame_labels_episode",
        "frame_labels",
        ["org_id", "dataset_id", "episode_id"],
    )


def downgrade() -> None:
    """Drop annotation tables."""
    op.drop_index("idx_frame_labels_episode", table_name="frame_labels")
    op.drop_table("frame_labels")
    op.drop_table("episode_labels")
    op.drop_table("labellers")
