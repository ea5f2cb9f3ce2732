"""campaign builder draft, ad set, ad and media tables

Revision ID: 0001_campaign_builder_tables
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_campaign_builder_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "ad_accounts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("platform", sa.Text(), nullable=False),
        sa.Column("platform_account_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.UniqueConstraint("user_id", "platform", "platform_account_id"),
    )
    op.create_index("ix_ad_accounts_user_id", "ad_accounts", ["user_id"])

    op.create_table(
        "platform_connections",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("platform", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="connected"),
        sa.Column("access_token_encrypted", sa.Text(), nullable=True),
        sa.Column(
            "config_json",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "platform"),
    )

    op.create_table(
        "campaign_drafts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("account_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column("objective", sa.Text(), nullable=False, server_default="OUTCOME_TRAFFIC"),
        sa.Column(
            "special_ad_categories",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("platform", sa.Text(), nullable=False, server_default="meta"),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("remote_campaign_id", sa.Text(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["account_id"], ["ad_accounts.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_campaign_drafts_user_status", "campaign_drafts", ["user_id", "status"]
    )

    op.create_table(
        "campaign_ad_sets",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("draft_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "targeting",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("budget_type", sa.Text(), nullable=False, server_default="daily"),
        sa.Column("budget_cents", sa.Integer(), nullable=False, server_default="2000"),
        sa.Column(
            "bid_strategy", sa.Text(), nullable=False, server_default="LOWEST_COST_WITHOUT_CAP"
        ),
        sa.Column("schedule_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("schedule_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("remote_ad_set_id", sa.Text(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["draft_id"], ["campaign_drafts.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "budget_type IN ('daily', 'lifetime')", name="ck_campaign_ad_sets_budget_type"
        ),
    )
    op.create_index(
        "ix_campaign_ad_sets_draft_position", "campaign_ad_sets", ["draft_id", "position"]
    )

    op.create_table(
        "media_uploads",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("filename", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.Text(), nullable=False, server_default="image/jpeg"),
        sa.Column("file_path", sa.Text(), nullable=True),
        sa.Column("public_url", sa.Text(), nullable=True),
        sa.Column(
            "platform_handles",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("status", sa.Text(), nullable=False, server_default="uploaded"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )
    op.create_index("ix_media_uploads_user_id", "media_uploads", ["user_id"])

    op.create_table(
        "campaign_ads",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("ad_set_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("name", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "creative_config",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("media_upload_id", sa.Uuid(as_uuid=True), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="draft"),
        sa.Column("remote_ad_id", sa.Text(), nullable=True),
        sa.Column("remote_creative_id", sa.Text(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["ad_set_id"], ["campaign_ad_sets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["media_upload_id"], ["media_uploads.id"], ondelete="SET NULL"
        ),
    )
    op.create_index(
        "ix_campaign_ads_ad_set_position", "campaign_ads", ["ad_set_id", "position"]
    )


def downgrade() -> None:
    op.drop_index("ix_campaign_ads_ad_set_position", table_name="campaign_ads")
    op.drop_table("campaign_ads")
    op.drop_index("ix_media_uploads_user_id", table_name="media_uploads")
    op.drop_table("media_uploads")
    op.drop_index("ix_campaign_ad_sets_draft_position", table_name="campaign_ad_sets")
    op.drop_table("campaign_ad_sets")
    op.drop_index("ix_campaign_drafts_user_status", table_name="campaign_drafts")
    op.drop_table("campaign_drafts")
    op.drop_table("platform_connections")
    op.drop_index("ix_ad_accounts_user_id", table_name="ad_accounts")
    op.drop_table("ad_accounts")
