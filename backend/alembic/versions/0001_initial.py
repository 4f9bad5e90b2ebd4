from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("username", sa.String(), nullable=False, unique=True),
        sa.Column("role", sa.String(), nullable=False, server_default="staff"),
        sa.Column("owner_id", sa.String(), sa.ForeignKey("user.id"), nullable=True),
    )
    op.create_table(
        "player",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("nickname", sa.String(), nullable=True),
        sa.Column("created_by", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "rotation",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="draft"),
        sa.Column("return_to_queue", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "court",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_table(
        "court_occupancy",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("rotation_id", sa.String(), sa.ForeignKey("rotation.id"), nullable=False),
        sa.Column("court_id", sa.String(), sa.ForeignKey("court.id"), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="available"),
        sa.Column("current_match_id", sa.String(), nullable=True),
        sa.Column("next_match_id", sa.String(), nullable=True),
        sa.UniqueConstraint(
            "rotation_id",
            "court_id",
            name="uq_court_occupancy_rotation_id_court_id",
        ),
    )
    op.create_table(
        "queue_entry",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("rotation_id", sa.String(), sa.ForeignKey("rotation.id"), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="queued"),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("manual_order", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_queue_entry_rotation_status", "queue_entry", ["rotation_id", "status"]
    )
    op.create_table(
        "queue_entry_player",
        sa.Column(
            "entry_id",
            sa.String(),
            sa.ForeignKey("queue_entry.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), primary_key=True),
    )
    op.create_table(
        "player_rotation_status",
        sa.Column("rotation_id", sa.String(), sa.ForeignKey("rotation.id"), primary_key=True),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), primary_key=True),
        sa.Column("status", sa.String(), nullable=False, server_default="checked_in"),
        sa.Column("games_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_played_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_new_player", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("rotation_id", sa.String(), sa.ForeignKey("rotation.id"), nullable=False),
        sa.Column(
            "court_occupancy_id",
            sa.String(),
            sa.ForeignKey("court_occupancy.id"),
            nullable=True,
        ),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("match_type", sa.String(), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("score", JSON_TYPE, nullable=True),
        sa.Column("winner_team", sa.Integer(), nullable=True),
    )
    op.create_table(
        "match_participant",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("match_id", sa.String(), sa.ForeignKey("match.id"), nullable=False),
        sa.Column("player_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("team_number", sa.Integer(), nullable=False),
    )
    op.create_table(
        "bracket_override",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("rotation_id", sa.String(), sa.ForeignKey("rotation.id"), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", JSON_TYPE, nullable=True),
        sa.Column("created_by", sa.String(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade():
    op.drop_table("bracket_override")
    op.drop_table("match_participant")
    op.drop_table("match")
    op.drop_table("player_rotation_status")
    op.drop_table("queue_entry_player")
    op.drop_index("ix_queue_entry_rotation_status", table_name="queue_entry")
    op.drop_table("queue_entry")
    op.drop_table("court_occupancy")
    op.drop_table("court")
    op.drop_table("rotation")
    op.drop_table("player")
    op.drop_table("user")
