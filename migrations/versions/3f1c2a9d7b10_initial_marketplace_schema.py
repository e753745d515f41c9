"""initial marketplace schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-17 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f1c2a9d7b10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("BUYER", "SELLER", "ADMIN", name="userrole"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column(
            "commission_rate", sa.Numeric(precision=5, scale=2),
            nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "commission_rate >= 0 AND commission_rate <= 100",
            name="check_commission_rate_range"),
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_email", ["email"], unique=True)
        batch_op.create_index("ix_users_username", ["username"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("requires_quote", sa.Boolean(), nullable=False),
        sa.Column("requires_design_approval", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_products_seller_id", "products", ["seller_id"])

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "product_id", sa.Integer(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("sku", sa.String(length=100), nullable=True, unique=True),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("inventory", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_product_variants_product_id", "product_variants", ["product_id"])

    op.create_table(
        "services",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("requires_quote", sa.Boolean(), nullable=False),
        sa.Column("requires_design_approval", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_services_seller_id", "services", ["seller_id"])

    op.create_table(
        "service_packages",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "service_id", sa.Integer(),
            sa.ForeignKey("services.id", ondelete="CASCADE"),
            nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
    )
    op.create_index(
        "ix_service_packages_service_id", "service_packages", ["service_id"])

    op.create_table(
        "conversations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "type",
            sa.Enum(
                "GENERAL", "PRODUCT_INQUIRY", "SERVICE_INQUIRY", "ORDER",
                "BOOKING", "DESIGN_APPROVAL", name="conversationtype"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("OPEN", "CLOSED", name="conversationstatus"),
            nullable=False,
        ),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "product_id", sa.Integer(),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "service_id", sa.Integer(),
            sa.ForeignKey("services.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column("workflow_contexts_json", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_conversations_buyer_id", "conversations", ["buyer_id"])
    op.create_index(
        "ix_conversations_seller_id", "conversations", ["seller_id"])

    op.create_table(
        "quotes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "conversation_id", sa.Integer(),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "product_id", sa.Integer(),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "service_id", sa.Integer(),
            sa.ForeignKey("services.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "product_variant_id", sa.Integer(),
            sa.ForeignKey("product_variants.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "service_package_id", sa.Integer(),
            sa.ForeignKey("service_packages.id", ondelete="SET NULL"),
            nullable=True),
        # FK to design_approvals is added once that table exists
        sa.Column("design_approval_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column(
            "quoted_price", sa.Numeric(precision=10, scale=2),
            nullable=True),
        sa.Column("specifications", sa.Text(), nullable=True),
        sa.Column("seller_notes", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "REQUESTED", "SENT", "PENDING", "ACCEPTED", "REJECTED",
                "EXPIRED", "SUPERSEDED", name="quotestatus"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "quantity > 0", name="check_quote_quantity_positive"),
    )
    op.create_index(
        "ix_quotes_conversation_id", "quotes", ["conversation_id"])
    op.create_index("ix_quotes_buyer_id", "quotes", ["buyer_id"])
    op.create_index("ix_quotes_seller_id", "quotes", ["seller_id"])
    op.create_index("ix_quotes_status", "quotes", ["status"])

    op.create_table(
        "design_approvals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "conversation_id", sa.Integer(),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "context",
            sa.Enum("PRODUCT", "QUOTE", name="designcontext"),
            nullable=False,
        ),
        sa.Column(
            "quote_id", sa.Integer(),
            sa.ForeignKey("quotes.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "product_id", sa.Integer(),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "service_id", sa.Integer(),
            sa.ForeignKey("services.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "variant_id", sa.Integer(),
            sa.ForeignKey("product_variants.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "package_id", sa.Integer(),
            sa.ForeignKey("service_packages.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column("design_files_json", sa.Text(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "UNDER_REVIEW", "CHANGES_REQUESTED",
                "RESUBMITTED", "APPROVED", "REJECTED", "SUPERSEDED",
                name="designapprovalstatus"),
            nullable=False,
        ),
        sa.Column("seller_notes", sa.Text(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_design_approvals_conversation_id", "design_approvals",
        ["conversation_id"])
    op.create_index(
        "ix_design_approvals_buyer_id", "design_approvals", ["buyer_id"])
    op.create_index(
        "ix_design_approvals_seller_id", "design_approvals", ["seller_id"])
    op.create_index(
        "ix_design_approvals_status", "design_approvals", ["status"])

    with op.batch_alter_table("quotes", schema=None) as batch_op:
        batch_op.create_foreign_key(
            "fk_quotes_design_approval_id",
            "design_approvals",
            ["design_approval_id"],
            ["id"],
            ondelete="SET NULL",
        )

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "product_variant_id", sa.Integer(),
            sa.ForeignKey("product_variants.id", ondelete="CASCADE"),
            nullable=False),
        sa.Column(
            "quote_id", sa.Integer(),
            sa.ForeignKey("quotes.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "design_approval_id", sa.Integer(),
            sa.ForeignKey("design_approvals.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="check_quantity_positive"),
    )
    op.create_index("ix_cart_items_buyer_id", "cart_items", ["buyer_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "product_id", sa.Integer(),
            sa.ForeignKey("products.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "product_variant_id", sa.Integer(),
            sa.ForeignKey("product_variants.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "quote_id", sa.Integer(),
            sa.ForeignKey("quotes.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "design_approval_id", sa.Integer(),
            sa.ForeignKey("design_approvals.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column(
            "unit_price", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "total_amount", sa.Numeric(precision=10, scale=2),
            nullable=False),
        sa.Column(
            "shipping_cost", sa.Numeric(precision=10, scale=2),
            nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING_PAYMENT", "PAID", "PROCESSING", "SHIPPED",
                "DELIVERED", "CANCELLED", name="orderstatus"),
            nullable=False,
        ),
        sa.Column("shipping_address", sa.Text(), nullable=True),
        sa.Column("return_attempt_count", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_seller_id", "orders", ["seller_id"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "service_id", sa.Integer(),
            sa.ForeignKey("services.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "service_package_id", sa.Integer(),
            sa.ForeignKey("service_packages.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "quote_id", sa.Integer(),
            sa.ForeignKey("quotes.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column(
            "design_approval_id", sa.Integer(),
            sa.ForeignKey("design_approvals.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING_CONFIRMATION", "CONFIRMED", "PENDING_PAYMENT",
                "PAID", "ONGOING", "COMPLETED", "CANCELLED",
                name="bookingstatus"),
            nullable=False,
        ),
        sa.Column("scheduled_date", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_bookings_buyer_id", "bookings", ["buyer_id"])
    op.create_index("ix_bookings_seller_id", "bookings", ["seller_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "type",
            sa.Enum(
                "ORDER", "BOOKING", "PAYOUT", "BOOST",
                name="transactiontype"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "ESCROW", "PAID", "RELEASED", "REFUNDED",
                name="transactionstatus"),
            nullable=False,
        ),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "order_id", sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "booking_id", sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="SET NULL"),
            nullable=True),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            "commission_rate", sa.Numeric(precision=5, scale=2),
            nullable=False),
        sa.Column(
            "commission_amount", sa.Numeric(precision=10, scale=2),
            nullable=False),
        sa.Column(
            "seller_payout", sa.Numeric(precision=10, scale=2),
            nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
        sa.Column("released_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_transactions_status", "transactions", ["status"])
    op.create_index(
        "ix_transactions_seller_id", "transactions", ["seller_id"])
    op.create_index("ix_transactions_order_id", "transactions", ["order_id"])
    op.create_index(
        "ix_transactions_booking_id", "transactions", ["booking_id"])

    op.create_table(
        "return_requests",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "buyer_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "order_id", sa.Integer(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "booking_id", sa.Integer(),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=True),
        sa.Column(
            "reason",
            sa.Enum(
                "DEFECTIVE", "WRONG_ITEM", "NOT_AS_DESCRIBED", "DAMAGED",
                "CHANGED_MIND", "OTHER", name="returnreason"),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("evidence_json", sa.Text(), nullable=True),
        sa.Column(
            "requested_refund_amount", sa.Numeric(precision=10, scale=2),
            nullable=False),
        sa.Column(
            "seller_status",
            sa.Enum("APPROVED", "REJECTED", name="sellerreturndecision"),
            nullable=True,
        ),
        sa.Column("seller_response", sa.Text(), nullable=True),
        sa.Column(
            "seller_proposed_refund_amount",
            sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column(
            "approved_refund_amount", sa.Numeric(precision=10, scale=2),
            nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("admin_override", sa.Boolean(), nullable=False),
        sa.Column(
            "commission_reversed_amount", sa.Numeric(precision=10, scale=2),
            nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "REQUESTED", "UNDER_REVIEW", "SELLER_APPROVED",
                "SELLER_REJECTED", "ADMIN_APPROVED", "ADMIN_REJECTED",
                "REFUNDED", "COMPLETED", "CANCELLED",
                name="returnrequeststatus"),
            nullable=False,
        ),
        sa.Column("seller_responded_at", sa.DateTime(), nullable=True),
        sa.Column("admin_resolved_at", sa.DateTime(), nullable=True),
        sa.Column("refunded_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(order_id IS NULL) <> (booking_id IS NULL)",
            name="check_return_single_source"),
    )
    op.create_index(
        "ix_return_requests_buyer_id", "return_requests", ["buyer_id"])
    op.create_index(
        "ix_return_requests_seller_id", "return_requests", ["seller_id"])
    op.create_index(
        "ix_return_requests_order_id", "return_requests", ["order_id"])
    op.create_index(
        "ix_return_requests_booking_id", "return_requests", ["booking_id"])
    op.create_index(
        "ix_return_requests_status", "return_requests", ["status"])

    op.create_table(
        "boosted_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "seller_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("item_type", sa.String(length=20), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index(
        "ix_boosted_items_seller_id", "boosted_items", ["seller_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=255), nullable=True),
        sa.Column("metadata_json", sa.Text(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index(
        "ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "actor_id", sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_role", sa.String(length=20), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("target_type", sa.String(length=50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("ip", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("notifications")
    op.drop_table("boosted_items")
    op.drop_table("return_requests")
    op.drop_table("transactions")
    op.drop_table("bookings")
    op.drop_table("orders")
    op.drop_table("cart_items")
    with op.batch_alter_table("quotes", schema=None) as batch_op:
        batch_op.drop_constraint(
            "fk_quotes_design_approval_id", type_="foreignkey")
    op.drop_table("design_approvals")
    op.drop_table("quotes")
    op.drop_table("conversations")
    op.drop_table("service_packages")
    op.drop_table("services")
    op.drop_table("product_variants")
    op.drop_table("products")
    op.drop_table("users")
