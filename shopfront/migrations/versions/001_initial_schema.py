"""Initial schema — users, sessions, catalog and orders.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order (FK dependency order):
  users → sessions → session_data → categories → products → orders
  → order_items

ON DELETE policies:
  sessions.user_id          → CASCADE   (sessions owned by the user)
  session_data.session_id   → CASCADE   (pinned CSRF token owned by the session)
  products.catid            → RESTRICT  (cannot delete a category with products)
  orders.user_id            → SET NULL  (order history survives the account)
  order_items.order_id      → CASCADE   (lines owned by the order)
  order_items.product_id    → SET NULL  (snapshot survives product deletion)

order status is stored as VARCHAR(16) with a CHECK constraint rather than a
native enum, so the same migration runs on PostgreSQL and SQLite.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None

_NOW = sa.text("CURRENT_TIMESTAMP")


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("password_salt", sa.String(64), nullable=False),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sa.CheckConstraint("email LIKE '%@%'", name="ck_users_email_format"),
    )

    # ── sessions ───────────────────────────────────────────────────────────
    # id is the SHA-256 hex digest of the cookie token.
    op.create_table(
        "sessions",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE", name="fk_sessions_user"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_sessions"),
    )
    op.create_index("ix_sessions_user_id", "sessions", ["user_id"])
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"])

    # ── session_data ───────────────────────────────────────────────────────
    # UNIQUE(session_id, key): first write wins for the pinned CSRF token.
    op.create_table(
        "session_data",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "session_id",
            sa.String(64),
            sa.ForeignKey("sessions.id", ondelete="CASCADE", name="fk_session_data_session"),
            nullable=False,
        ),
        sa.Column("key", sa.String(64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_session_data"),
        sa.UniqueConstraint("session_id", "key", name="uq_session_data_session_key"),
    )
    op.create_index("ix_session_data_session_id", "session_data", ["session_id"])

    # ── categories / products ──────────────────────────────────────────────
    op.create_table(
        "categories",
        sa.Column("catid", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint("catid", name="pk_categories"),
    )

    op.create_table(
        "products",
        sa.Column("pid", sa.Integer(), nullable=False),
        sa.Column(
            "catid",
            sa.Integer(),
            sa.ForeignKey("categories.catid", ondelete="RESTRICT", name="fk_products_category"),
            nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image", sa.String(255), nullable=True),
        sa.PrimaryKeyConstraint("pid", name="pk_products"),
        sa.CheckConstraint("price > 0", name="ck_products_price_positive"),
    )
    op.create_index("ix_products_catid", "products", ["catid"])

    # ── orders ─────────────────────────────────────────────────────────────
    op.create_table(
        "orders",
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL", name="fk_orders_user"),
            nullable=True,
        ),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("currency_code", sa.String(3), nullable=False),
        sa.Column(
            "status",
            sa.String(16),
            nullable=False,
            server_default=sa.text("'CREATED'"),
        ),
        sa.Column("order_digest", sa.String(64), nullable=False),
        sa.Column("digest_salt", sa.String(64), nullable=False),
        sa.Column("paypal_order_id", sa.String(64), nullable=True),
        sa.Column("paypal_transaction_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=_NOW),
        sa.PrimaryKeyConstraint("order_id", name="pk_orders"),
        sa.UniqueConstraint("order_digest", name="uq_orders_digest"),
        sa.CheckConstraint("total_amount >= 0", name="ck_orders_total_nonnegative"),
        sa.CheckConstraint(
            "status IN ('CREATED', 'APPROVED', 'COMPLETED', 'FAILED')",
            name="order_status_enum",
        ),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])

    # ── order_items ────────────────────────────────────────────────────────
    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("orders.order_id", ondelete="CASCADE", name="fk_order_items_order"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.pid", ondelete="SET NULL", name="fk_order_items_product"),
            nullable=True,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(100), nullable=False),
        sa.Column("price_at_purchase", sa.Numeric(10, 2), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_order_items"),
        sa.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        sa.CheckConstraint("price_at_purchase > 0", name="ck_order_items_price_positive"),
    )
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"])


def downgrade() -> None:
    """Drop everything created in upgrade(), in reverse dependency order."""
    op.drop_index("ix_order_items_order_id", table_name="order_items")
    op.drop_index("ix_orders_user_id",       table_name="orders")
    op.drop_index("ix_products_catid",       table_name="products")
    op.drop_index("ix_session_data_session_id", table_name="session_data")
    op.drop_index("ix_sessions_expires_at",  table_name="sessions")
    op.drop_index("ix_sessions_user_id",     table_name="sessions")

    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("categories")
    op.drop_table("session_data")
    op.drop_table("sessions")
    op.drop_table("users")
