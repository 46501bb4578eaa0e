"""Initial schema: products, sales with selling status workflow, members

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=True),
        sa.Column("customer_price_cents", sa.Integer(), nullable=True),
        sa.Column("balance", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("sold", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_products")),
        sa.UniqueConstraint("sku", name="uq_products_sku"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_category", ["category"], unique=False)
        batch_op.create_index("ix_products_category_sold", ["category", "sold"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("document_number", sa.String(64), nullable=True),
        sa.Column("selling_status", sa.String(16), nullable=False, server_default="order"),
        sa.Column("member_id", sa.Integer(), nullable=True),
        sa.Column("seller", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("delivery_status", sa.String(16), nullable=True),
        sa.Column("bank_code", sa.String(16), nullable=True),
        sa.Column("bank_account", sa.String(64), nullable=True),
        sa.Column("payment_due_date", sa.Date(), nullable=True),
        sa.Column("deposit_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("delivery_fee_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("shipping_address", sa.Text(), nullable=True),
        sa.Column("shipping_province", sa.String(128), nullable=True),
        sa.Column("has_payment_slip", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("has_shipping_slip", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("stock_deducted", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sales")),
        sa.UniqueConstraint("document_number", name="uq_sales_docnum"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_selling_status", ["selling_status"], unique=False)
        batch_op.create_index("ix_sales_member_id", ["member_id"], unique=False)
        batch_op.create_index("ix_sales_payment_method", ["payment_method"], unique=False)
        batch_op.create_index("ix_sales_member_status", ["member_id", "selling_status"], unique=False)

    op.create_table(
        "sale_lines",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], name=op.f("fk_sale_lines_sale_id_sales")),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], name=op.f("fk_sale_lines_product_id_products")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sale_lines")),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sale_lines", schema=None) as batch_op:
        batch_op.create_index("ix_sale_lines_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "members",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("display_name", sa.String(128), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("province", sa.String(128), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="inquiry"),
        sa.Column("customer_level", sa.String(8), nullable=False, server_default="general"),
        sa.Column("purchase_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_purchase_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_purchase_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_members")),
        sa.UniqueConstraint("code", name="uq_members_code"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("members", schema=None) as batch_op:
        batch_op.create_index("ix_members_status", ["status"], unique=False)
        batch_op.create_index("ix_members_status_level", ["status", "customer_level"], unique=False)

    op.create_table(
        "member_purchases",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("member_id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["member_id"], ["members.id"], name=op.f("fk_member_purchases_member_id_members")),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"], name=op.f("fk_member_purchases_sale_id_sales")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_member_purchases")),
        sa.UniqueConstraint("member_id", "sale_id", name="uq_member_purchases_member_sale"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("member_purchases", schema=None) as batch_op:
        batch_op.create_index("ix_member_purchases_member_id", ["member_id"], unique=False)
        batch_op.create_index("ix_member_purchases_sale_id", ["sale_id"], unique=False)


def downgrade():
    op.drop_table("member_purchases")
    op.drop_table("members")
    op.drop_table("sale_lines")
    op.drop_table("sales")
    op.drop_table("products")
