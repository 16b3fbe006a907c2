"""initial schema: users, point accounts, ledger and draw results

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_table(
        "user_points",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("balance >= 0", name="ck_user_points_balance_non_negative"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_user_points_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_user_points"),
        sa.UniqueConstraint("user_id", name="uq_user_points_user_id"),
    )
    op.create_table(
        "gacha_results",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("reward_id", sa.Integer(), nullable=False),
        sa.Column("reward_name", sa.String(length=255), nullable=False),
        sa.Column(
            "rarity",
            sa.Enum(
                "Common", "Rare", "Epic", "Legendary",
                name="rarity",
                native_enum=False,
                length=16,
            ),
            nullable=False,
        ),
        sa.Column("points_earned", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_gacha_results_user_id_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_gacha_results"),
    )
    op.create_index(
        "ix_gacha_results_user_created",
        "gacha_results",
        ["user_id", "created_at"],
        unique=False,
    )
    op.create_table(
        "point_transactions",
        sa.Column("id", ID, autoincrement=True, nullable=False),
        sa.Column("user_id", ID, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("gacha", "spend", name="transaction_kind", native_enum=False, length=20),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column("draw_result_id", ID, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_point_transactions_amount_positive"),
        sa.ForeignKeyConstraint(
            ["draw_result_id"],
            ["gacha_results.id"],
            name="fk_point_transactions_draw_result_id_gacha_results",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_point_transactions_user_id_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_point_transactions"),
        sa.UniqueConstraint("draw_result_id", name="uq_point_transactions_draw_result_id"),
    )
    op.create_index(
        "ix_point_transactions_user_created",
        "point_transactions",
        ["user_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_point_transactions_user_created", table_name="point_transactions")
    op.drop_table("point_transactions")
    op.drop_index("ix_gacha_results_user_created", table_name="gacha_results")
    op.drop_table("gacha_results")
    op.drop_table("user_points")
    op.drop_table("users")
