from marketplace.extensions import db, atomic
from marketplace.errors import (
    NotFound,
    Forbidden,
    ValidationFailed,
    PurchaseBlocked,
)
from marketplace.models import (
    CartItem,
    DesignApproval,
    DesignApprovalStatus,
    Product,
    ProductVariant,
    Quote,
    QuoteStatus,
)
from marketplace.services.catalog_service import ProductItem
from marketplace.services.purchase_service import (
    validate_purchase_requirements,
)
import logging

logger = logging.getLogger(__name__)


def _validate_quantity(quantity):
    try:
        quantity = int(quantity)
    except (TypeError, ValueError):
        raise ValidationFailed('Quantity must be an integer')
    if quantity <= 0:
        raise ValidationFailed('Quantity must be greater than 0')
    return quantity


def _line_identity(buyer_id, variant_id, quote_id, design_approval_id):
    criteria = [
        CartItem.buyer_id == buyer_id,
        CartItem.product_variant_id == variant_id,
    ]
    if quote_id is None:
        criteria.append(CartItem.quote_id.is_(None))
    else:
        criteria.append(CartItem.quote_id == quote_id)
    if design_approval_id is None:
        criteria.append(CartItem.design_approval_id.is_(None))
    else:
        criteria.append(CartItem.design_approval_id == design_approval_id)
    return criteria


def merge_cart_line(
        buyer_id,
        variant_id,
        quantity=1,
        quote_id=None,
        design_approval_id=None):
    """Add to or create the line for this exact pricing context.

    Lines are keyed by (buyer, variant, quote, design approval), so a
    quoted or design-approved purchase never folds into a plain one.
    Flushes only; the caller owns the transaction.
    """
    quantity = _validate_quantity(quantity)
    line = CartItem.query.filter(
        *_line_identity(buyer_id, variant_id, quote_id, design_approval_id)
    ).first()
    if line:
        line.quantity += quantity
    else:
        line = CartItem(
            buyer_id=buyer_id,
            product_variant_id=variant_id,
            quote_id=quote_id,
            design_approval_id=design_approval_id,
            quantity=quantity,
        )
        db.session.add(line)
    db.session.flush()
    return line


def add_to_cart(
        buyer_id,
        variant_id,
        quantity=1,
        quote_id=None,
        design_approval_id=None):
    with atomic():
        line = merge_cart_line(
            buyer_id,
            variant_id,
            quantity=quantity,
            quote_id=quote_id,
            design_approval_id=design_approval_id,
        )
    return line


def _check_quote_for_cart(quote_id, buyer_id, variant):
    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise NotFound('Quote not found')
    if quote.buyer_id != buyer_id:
        raise Forbidden('This quote belongs to another buyer')
    if quote.status != QuoteStatus.ACCEPTED:
        raise ValidationFailed('Quote must be accepted before purchase')
    if quote.product_variant_id != variant.id:
        raise ValidationFailed('Quote does not match the selected variant')
    return quote


def _check_design_for_cart(design_id, buyer_id, variant, product):
    design = db.session.get(DesignApproval, design_id)
    if not design:
        raise NotFound('Design approval not found')
    if design.buyer_id != buyer_id:
        raise Forbidden('This design approval belongs to another buyer')
    if design.status != DesignApprovalStatus.APPROVED:
        raise ValidationFailed('Design must be approved before purchase')
    if design.variant_id is None:
        # Legacy approvals predate variant scoping
        if design.product_id != product.id or product.variants.count() != 1:
            raise ValidationFailed(
                'Design approval does not match the selected variant')
    elif design.variant_id != variant.id:
        raise ValidationFailed(
            'Design approval does not match the selected variant')
    return design


def add_variant_to_cart(
        buyer_id,
        variant_id,
        quantity=1,
        quote_id=None,
        design_approval_id=None):
    quantity = _validate_quantity(quantity)
    variant = db.session.get(ProductVariant, variant_id)
    if not variant:
        raise NotFound('Product variant not found')
    product = db.session.get(Product, variant.product_id)
    if not product or not product.is_active:
        raise NotFound('Product not found')

    if quote_id is not None:
        quote = _check_quote_for_cart(quote_id, buyer_id, variant)
        if quote.design_approval_id is not None:
            design_approval_id = quote.design_approval_id

    if product.requires_design_approval and design_approval_id is None \
            and quote_id is None:
        raise ValidationFailed(
            'This product requires an approved design. '
            'Upload your design in the messages first.')

    if design_approval_id is not None and quote_id is None:
        _check_design_for_cart(design_approval_id, buyer_id, variant, product)

    validation = validate_purchase_requirements(
        ProductItem(product.id, variant.id),
        buyer_id,
        skip_quote=quote_id is not None,
    )
    if not validation.can_purchase:
        raise PurchaseBlocked(validation)

    line = add_to_cart(
        buyer_id,
        variant.id,
        quantity=quantity,
        quote_id=quote_id,
        design_approval_id=design_approval_id,
    )
    logger.info(
        "Buyer %s added variant %s x%s to cart (quote=%s design=%s)",
        buyer_id,
        variant.id,
        quantity,
        quote_id,
        design_approval_id,
    )
    return line


def get_cart_items(buyer_id):
    return CartItem.query.filter_by(
        buyer_id=buyer_id
    ).order_by(CartItem.created_at, CartItem.id).all()


def _get_own_line(item_id, buyer_id):
    line = db.session.get(CartItem, item_id)
    if not line:
        raise NotFound('Cart item not found')
    if line.buyer_id != buyer_id:
        raise Forbidden('No permission to modify this cart item')
    return line


def update_cart_item_quantity(item_id, buyer_id, quantity):
    line = _get_own_line(item_id, buyer_id)
    line.quantity = _validate_quantity(quantity)
    db.session.commit()
    return line


def remove_cart_item(item_id, buyer_id):
    line = _get_own_line(item_id, buyer_id)
    db.session.delete(line)
    db.session.commit()


def clear_cart(buyer_id):
    CartItem.query.filter_by(buyer_id=buyer_id).delete()
    db.session.commit()
