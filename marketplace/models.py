from marketplace.extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from decimal import Decimal
from sqlalchemy import CheckConstraint
import enum
import json


class UserRole(enum.Enum):
    BUYER = 'BUYER'
    SELLER = 'SELLER'
    ADMIN = 'ADMIN'


class QuoteStatus(enum.Enum):
    REQUESTED = 'requested'
    SENT = 'sent'
    # Legacy alias of SENT
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    EXPIRED = 'expired'
    SUPERSEDED = 'superseded'


ACTIVE_QUOTE_STATUSES = (
    QuoteStatus.SENT,
    QuoteStatus.PENDING,
    QuoteStatus.ACCEPTED,
)
ACCEPTABLE_QUOTE_STATUSES = (QuoteStatus.SENT, QuoteStatus.PENDING)
TERMINAL_QUOTE_STATUSES = (
    QuoteStatus.ACCEPTED,
    QuoteStatus.REJECTED,
    QuoteStatus.EXPIRED,
    QuoteStatus.SUPERSEDED,
)


class DesignContext(enum.Enum):
    PRODUCT = 'product'
    QUOTE = 'quote'


class DesignApprovalStatus(enum.Enum):
    PENDING = 'pending'
    UNDER_REVIEW = 'under_review'
    CHANGES_REQUESTED = 'changes_requested'
    RESUBMITTED = 'resubmitted'
    APPROVED = 'approved'
    REJECTED = 'rejected'
    SUPERSEDED = 'superseded'


REVIEWABLE_DESIGN_STATUSES = (
    DesignApprovalStatus.PENDING,
    DesignApprovalStatus.UNDER_REVIEW,
    DesignApprovalStatus.RESUBMITTED,
)


class ConversationType(enum.Enum):
    GENERAL = 'general'
    PRODUCT_INQUIRY = 'product_inquiry'
    SERVICE_INQUIRY = 'service_inquiry'
    ORDER = 'order'
    BOOKING = 'booking'
    DESIGN_APPROVAL = 'design_approval'


class ConversationStatus(enum.Enum):
    OPEN = 'open'
    CLOSED = 'closed'


class OrderStatus(enum.Enum):
    PENDING_PAYMENT = 'pending_payment'
    PAID = 'paid'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class BookingStatus(enum.Enum):
    PENDING_CONFIRMATION = 'pending_confirmation'
    CONFIRMED = 'confirmed'
    PENDING_PAYMENT = 'pending_payment'
    PAID = 'paid'
    ONGOING = 'ongoing'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class TransactionType(enum.Enum):
    ORDER = 'order'
    BOOKING = 'booking'
    PAYOUT = 'payout'
    BOOST = 'boost'


class TransactionStatus(enum.Enum):
    PENDING = 'pending'
    ESCROW = 'escrow'
    PAID = 'paid'
    RELEASED = 'released'
    REFUNDED = 'refunded'


class ReturnReason(enum.Enum):
    DEFECTIVE = 'defective'
    WRONG_ITEM = 'wrong_item'
    NOT_AS_DESCRIBED = 'not_as_described'
    DAMAGED = 'damaged'
    CHANGED_MIND = 'changed_mind'
    OTHER = 'other'


class ReturnRequestStatus(enum.Enum):
    REQUESTED = 'requested'
    UNDER_REVIEW = 'under_review'
    SELLER_APPROVED = 'seller_approved'
    SELLER_REJECTED = 'seller_rejected'
    ADMIN_APPROVED = 'admin_approved'
    ADMIN_REJECTED = 'admin_rejected'
    REFUNDED = 'refunded'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


# A source (order or booking) may carry only one of these at a time
ACTIVE_RETURN_STATUSES = (
    ReturnRequestStatus.REQUESTED,
    ReturnRequestStatus.UNDER_REVIEW,
    ReturnRequestStatus.SELLER_APPROVED,
    ReturnRequestStatus.SELLER_REJECTED,
    ReturnRequestStatus.ADMIN_APPROVED,
)


class SellerReturnDecision(enum.Enum):
    APPROVED = 'approved'
    REJECTED = 'rejected'


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    username = db.Column(
        db.String(100),
        unique=True,
        nullable=True,
        index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(UserRole),
        nullable=False,
        default=UserRole.BUYER)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    # Platform commission in percent, applied to this user's sales
    commission_rate = db.Column(
        db.Numeric(5, 2),
        nullable=False,
        default=Decimal('20.00'))
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            'commission_rate >= 0 AND commission_rate <= 100',
            name='check_commission_rate_range'),
    )

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    requires_quote = db.Column(db.Boolean, nullable=False, default=False)
    requires_design_approval = db.Column(
        db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    seller = db.relationship('User', foreign_keys=[seller_id])
    variants = db.relationship(
        'ProductVariant',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Product {self.title}>'


class ProductVariant(db.Model):
    __tablename__ = 'product_variants'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    name = db.Column(db.String(100), nullable=False)
    sku = db.Column(db.String(100), nullable=True, unique=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    inventory = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self):
        return f'<ProductVariant {self.id} {self.name}>'


class Service(db.Model):
    __tablename__ = 'services'

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    requires_quote = db.Column(db.Boolean, nullable=False, default=False)
    requires_design_approval = db.Column(
        db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    seller = db.relationship('User', foreign_keys=[seller_id])
    packages = db.relationship(
        'ServicePackage',
        backref='service',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Service {self.title}>'


class ServicePackage(db.Model):
    __tablename__ = 'service_packages'

    id = db.Column(db.Integer, primary_key=True)
    service_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'services.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=True)

    def __repr__(self):
        return f'<ServicePackage {self.id} {self.name}>'


class Conversation(db.Model):
    __tablename__ = 'conversations'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(
        db.Enum(ConversationType),
        nullable=False,
        default=ConversationType.GENERAL)
    status = db.Column(
        db.Enum(ConversationStatus),
        nullable=False,
        default=ConversationStatus.OPEN)
    subject = db.Column(db.String(200), nullable=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey('products.id', ondelete='SET NULL'),
        nullable=True)
    service_id = db.Column(
        db.Integer,
        db.ForeignKey('services.id', ondelete='SET NULL'),
        nullable=True)
    # JSON list, e.g. ["quote", "product"]
    workflow_contexts_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    buyer = db.relationship('User', foreign_keys=[buyer_id])
    seller = db.relationship('User', foreign_keys=[seller_id])

    def get_workflow_contexts(self):
        if self.workflow_contexts_json:
            return json.loads(self.workflow_contexts_json)
        return []

    def set_workflow_contexts(self, contexts):
        self.workflow_contexts_json = json.dumps(list(contexts))

    def is_participant(self, user_id):
        return user_id in (self.buyer_id, self.seller_id)

    def __repr__(self):
        return f'<Conversation {self.id} type={self.type}>'


class Quote(db.Model):
    __tablename__ = 'quotes'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'conversations.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey('products.id', ondelete='SET NULL'),
        nullable=True)
    service_id = db.Column(
        db.Integer,
        db.ForeignKey('services.id', ondelete='SET NULL'),
        nullable=True)
    product_variant_id = db.Column(
        db.Integer,
        db.ForeignKey('product_variants.id', ondelete='SET NULL'),
        nullable=True)
    service_package_id = db.Column(
        db.Integer,
        db.ForeignKey('service_packages.id', ondelete='SET NULL'),
        nullable=True)
    design_approval_id = db.Column(
        db.Integer,
        db.ForeignKey('design_approvals.id', ondelete='SET NULL'),
        nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    # Null until the seller responds to a request
    quoted_price = db.Column(db.Numeric(10, 2), nullable=True)
    specifications = db.Column(db.Text, nullable=True)
    seller_notes = db.Column(db.Text, nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.Enum(QuoteStatus),
        nullable=False,
        default=QuoteStatus.REQUESTED,
        index=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    sent_at = db.Column(db.DateTime, nullable=True)
    accepted_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quote_quantity_positive'),
    )

    conversation = db.relationship('Conversation', backref='quotes')
    design_approval = db.relationship(
        'DesignApproval',
        foreign_keys=[design_approval_id])

    def is_expired(self, now=None):
        now = now or datetime.utcnow()
        return self.expires_at is not None and self.expires_at < now

    def __repr__(self):
        return f'<Quote {self.id} status={self.status}>'


class DesignApproval(db.Model):
    __tablename__ = 'design_approvals'

    id = db.Column(db.Integer, primary_key=True)
    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'conversations.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    context = db.Column(
        db.Enum(DesignContext),
        nullable=False,
        default=DesignContext.PRODUCT)
    # Set when the design belongs to a custom quote rather than a variant
    quote_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'quotes.id',
            ondelete='SET NULL',
            use_alter=True),
        nullable=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey('products.id', ondelete='SET NULL'),
        nullable=True)
    service_id = db.Column(
        db.Integer,
        db.ForeignKey('services.id', ondelete='SET NULL'),
        nullable=True)
    variant_id = db.Column(
        db.Integer,
        db.ForeignKey('product_variants.id', ondelete='SET NULL'),
        nullable=True)
    package_id = db.Column(
        db.Integer,
        db.ForeignKey('service_packages.id', ondelete='SET NULL'),
        nullable=True)
    # JSON list of {url, filename, size, mime_type}
    design_files_json = db.Column(db.Text, nullable=False, default='[]')
    status = db.Column(
        db.Enum(DesignApprovalStatus),
        nullable=False,
        default=DesignApprovalStatus.PENDING,
        index=True)
    seller_notes = db.Column(db.Text, nullable=True)
    approved_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    conversation = db.relationship('Conversation', backref='design_approvals')
    quote = db.relationship('Quote', foreign_keys=[quote_id])

    def get_design_files(self):
        if self.design_files_json:
            return json.loads(self.design_files_json)
        return []

    def set_design_files(self, files):
        self.design_files_json = json.dumps(list(files), ensure_ascii=False)

    def __repr__(self):
        return f'<DesignApproval {self.id} status={self.status}>'


class CartItem(db.Model):
    __tablename__ = 'cart_items'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_variant_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'product_variants.id',
            ondelete='CASCADE'),
        nullable=False)
    quote_id = db.Column(
        db.Integer,
        db.ForeignKey('quotes.id', ondelete='SET NULL'),
        nullable=True)
    design_approval_id = db.Column(
        db.Integer,
        db.ForeignKey('design_approvals.id', ondelete='SET NULL'),
        nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
    )

    variant = db.relationship('ProductVariant')
    quote = db.relationship('Quote')
    design_approval = db.relationship('DesignApproval')

    @property
    def effective_unit_price(self):
        if self.quote is not None and self.quote.quoted_price is not None:
            return self.quote.quoted_price
        return self.variant.price

    def __repr__(self):
        return (
            f"<CartItem {self.id} variant={self.product_variant_id} "
            f"quote={self.quote_id} qty={self.quantity}>"
        )


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey('products.id', ondelete='SET NULL'),
        nullable=True)
    product_variant_id = db.Column(
        db.Integer,
        db.ForeignKey('product_variants.id', ondelete='SET NULL'),
        nullable=True)
    quote_id = db.Column(
        db.Integer,
        db.ForeignKey('quotes.id', ondelete='SET NULL'),
        nullable=True)
    design_approval_id = db.Column(
        db.Integer,
        db.ForeignKey('design_approvals.id', ondelete='SET NULL'),
        nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False)
    # Product amount only; shipping is kept apart for commission reversal
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    shipping_cost = db.Column(
        db.Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00'))
    status = db.Column(
        db.Enum(OrderStatus),
        nullable=False,
        default=OrderStatus.PENDING_PAYMENT)
    shipping_address = db.Column(db.Text, nullable=True)
    return_attempt_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    transactions = db.relationship(
        'Transaction',
        backref='order',
        lazy='dynamic')

    @property
    def grand_total(self):
        return self.total_amount + (self.shipping_cost or Decimal('0.00'))

    def __repr__(self):
        return f'<Order {self.id} status={self.status}>'


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    service_id = db.Column(
        db.Integer,
        db.ForeignKey('services.id', ondelete='SET NULL'),
        nullable=True)
    service_package_id = db.Column(
        db.Integer,
        db.ForeignKey('service_packages.id', ondelete='SET NULL'),
        nullable=True)
    quote_id = db.Column(
        db.Integer,
        db.ForeignKey('quotes.id', ondelete='SET NULL'),
        nullable=True)
    design_approval_id = db.Column(
        db.Integer,
        db.ForeignKey('design_approvals.id', ondelete='SET NULL'),
        nullable=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(
        db.Enum(BookingStatus),
        nullable=False,
        default=BookingStatus.PENDING_PAYMENT)
    scheduled_date = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    transactions = db.relationship(
        'Transaction',
        backref='booking',
        lazy='dynamic')

    def __repr__(self):
        return f'<Booking {self.id} status={self.status}>'


class Transaction(db.Model):
    """Append-only ledger entry; refunds are new negative rows."""
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.Enum(TransactionType), nullable=False)
    status = db.Column(
        db.Enum(TransactionStatus),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='SET NULL'),
        nullable=True,
        index=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey('orders.id', ondelete='SET NULL'),
        nullable=True,
        index=True)
    booking_id = db.Column(
        db.Integer,
        db.ForeignKey('bookings.id', ondelete='SET NULL'),
        nullable=True,
        index=True)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    commission_rate = db.Column(
        db.Numeric(5, 2),
        nullable=False,
        default=Decimal('0.00'))
    commission_amount = db.Column(
        db.Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00'))
    seller_payout = db.Column(
        db.Numeric(10, 2),
        nullable=False,
        default=Decimal('0.00'))
    description = db.Column(db.String(255), nullable=True)
    released_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return (
            f"<Transaction {self.id} type={self.type} "
            f"status={self.status} amount={self.amount}>"
        )


class ReturnRequest(db.Model):
    __tablename__ = 'return_requests'

    id = db.Column(db.Integer, primary_key=True)
    buyer_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey('orders.id', ondelete='CASCADE'),
        nullable=True,
        index=True)
    booking_id = db.Column(
        db.Integer,
        db.ForeignKey('bookings.id', ondelete='CASCADE'),
        nullable=True,
        index=True)
    reason = db.Column(db.Enum(ReturnReason), nullable=False)
    description = db.Column(db.Text, nullable=True)
    # JSON list of evidence file refs
    evidence_json = db.Column(db.Text, nullable=True)
    requested_refund_amount = db.Column(db.Numeric(10, 2), nullable=False)
    seller_status = db.Column(db.Enum(SellerReturnDecision), nullable=True)
    seller_response = db.Column(db.Text, nullable=True)
    seller_proposed_refund_amount = db.Column(
        db.Numeric(10, 2), nullable=True)
    approved_refund_amount = db.Column(db.Numeric(10, 2), nullable=True)
    admin_notes = db.Column(db.Text, nullable=True)
    admin_override = db.Column(db.Boolean, nullable=False, default=False)
    commission_reversed_amount = db.Column(db.Numeric(10, 2), nullable=True)
    status = db.Column(
        db.Enum(ReturnRequestStatus),
        nullable=False,
        default=ReturnRequestStatus.REQUESTED,
        index=True)
    seller_responded_at = db.Column(db.DateTime, nullable=True)
    admin_resolved_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint(
            '(order_id IS NULL) <> (booking_id IS NULL)',
            name='check_return_single_source'),
    )

    order = db.relationship('Order', foreign_keys=[order_id])
    booking = db.relationship('Booking', foreign_keys=[booking_id])

    def get_evidence(self):
        if self.evidence_json:
            return json.loads(self.evidence_json)
        return []

    def set_evidence(self, files):
        self.evidence_json = json.dumps(list(files), ensure_ascii=False)

    def __repr__(self):
        return f'<ReturnRequest {self.id} status={self.status}>'


class BoostedItem(db.Model):
    __tablename__ = 'boosted_items'

    id = db.Column(db.Integer, primary_key=True)
    seller_id = db.Column(
        db.Integer,
        db.ForeignKey('users.id', ondelete='CASCADE'),
        nullable=False,
        index=True)
    # "product" or "service"
    item_type = db.Column(db.String(20), nullable=False)
    item_id = db.Column(db.Integer, nullable=False)
    start_date = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def __repr__(self):
        return f'<BoostedItem {self.item_type}:{self.item_id}>'


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    # e.g., quote_received, design_approved, refund_processed
    type = db.Column(db.String(50), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    link = db.Column(db.String(255), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def set_metadata(self, data):
        self.metadata_json = json.dumps(data, ensure_ascii=False)

    def get_metadata(self):
        if self.metadata_json:
            return json.loads(self.metadata_json)
        return {}

    def __repr__(self):
        return f'<Notification {self.id} type={self.type}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., QUOTE_ACCEPT, DESIGN_APPROVE, REFUND_PROCESS
    action = db.Column(db.String(100), nullable=False)
    # QUOTE, DESIGN_APPROVAL, RETURN_REQUEST, TRANSACTION, etc.
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False, default=str)

    def get_payload(self):
        if self.payload_json:
            return json.loads(self.payload_json)
        return {}

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
