"""account, billing_package and billing_transaction_accounts

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

PAYMENT_STATUS = sa.Enum(
    "pending",
    "processing",
    "completed",
    "expired",
    name="paymentstatus",
    native_enum=False,
    length=20,
)


def upgrade() -> None:
    op.create_table(
        "account",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("question", sa.String(255), nullable=True),
        sa.Column("answer", sa.String(255), nullable=True),
        sa.Column("email", sa.String(100), nullable=True),
        sa.Column("sodienthoai", sa.String(20), nullable=False, server_default="0"),
        sa.Column("point", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_lock", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_ip_login", sa.String(45), nullable=True),
        sa.Column("token_version", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("date_registered", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_modified", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_account_name", "account", ["name"], unique=True)

    op.create_table(
        "billing_package",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("package_code", sa.String(50), nullable=False),
        sa.Column("package_name", sa.String(100), nullable=False),
        sa.Column("silver_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bonus_silver", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("price_vnd", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_popular", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.UniqueConstraint("package_code", name="uq_billing_package_package_code"),
    )

    op.create_table(
        "billing_transaction_accounts",
        sa.Column("transaction_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column("package", sa.String(50), nullable=False),
        sa.Column("amount", sa.Numeric(precision=15, scale=2), nullable=False),
        sa.Column("status", PAYMENT_STATUS, nullable=False),
        sa.Column("transaction_code", sa.String(100), nullable=False),
        sa.Column("qr_code_url", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("bank_transaction_id", sa.String(100), nullable=True),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["account.id"],
            name="fk_billing_transaction_accounts_user_id_account",
        ),
        sa.UniqueConstraint(
            "transaction_code", name="uq_billing_transaction_accounts_transaction_code"
        ),
    )
    op.create_index(
        "ix_billing_transaction_accounts_user_id",
        "billing_transaction_accounts",
        ["user_id"],
    )
    op.create_index(
        "ix_billing_transaction_accounts_status",
        "billing_transaction_accounts",
        ["status"],
    )


def downgrade() -> None:
    op.drop_table("billing_transaction_accounts")
    op.drop_table("billing_package")
    op.drop_index("ix_account_name", table_name="account")
    op.drop_table("account")
