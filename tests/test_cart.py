from datetime import datetime
from decimal import Decimal
import pytest
from marketplace.errors import (
    Forbidden,
    NotFound,
    PurchaseBlocked,
    ValidationFailed,
)
from marketplace.extensions import db
from marketplace.models import (
    CartItem,
    DesignApproval,
    DesignApprovalStatus,
    DesignContext,
)
from marketplace.services import cart_service, quote_service
from marketplace.services.catalog_service import ProductItem
from marketplace.services.purchase_service import PurchaseBlockReason
from factories import (
    DESIGN_FILES,
    approved_design,
    make_product,
    open_conversation,
    sent_quote,
    variants_of,
)


def test_plain_adds_merge_and_quoted_line_stays_apart(
        buyer, seller, plain_product):
    variant = variants_of(plain_product)[0]
    item = ProductItem(plain_product.id, variant.id)
    conversation = open_conversation(buyer, seller, item)
    quote = sent_quote(conversation, seller, item, price='10.00')
    quote_service.accept_quote(quote.id, buyer.id)

    cart_service.add_variant_to_cart(buyer.id, variant.id, quantity=1)
    cart_service.add_variant_to_cart(buyer.id, variant.id, quantity=2)

    lines = cart_service.get_cart_items(buyer.id)
    assert len(lines) == 2
    quoted = [line for line in lines if line.quote_id == quote.id][0]
    plain = [line for line in lines if line.quote_id is None][0]
    assert quoted.quantity == 1
    assert quoted.effective_unit_price == Decimal('10.00')
    assert plain.quantity == 3
    assert plain.effective_unit_price == Decimal('12.50')


def test_quoted_add_merges_into_accepted_line(
        buyer, seller, quote_product):
    variant = variants_of(quote_product)[0]
    item = ProductItem(quote_product.id, variant.id)
    conversation = open_conversation(buyer, seller, item)
    quote = sent_quote(conversation, seller, item, quantity=2)
    quote_service.accept_quote(quote.id, buyer.id)

    cart_service.add_variant_to_cart(
        buyer.id, variant.id, quantity=1, quote_id=quote.id)

    line = CartItem.query.filter_by(buyer_id=buyer.id).one()
    assert line.quantity == 3
    assert line.quote_id == quote.id


def test_quote_must_be_accepted_and_owned(
        buyer, other_buyer, seller, quote_product):
    variant = variants_of(quote_product)[0]
    item = ProductItem(quote_product.id, variant.id)
    conversation = open_conversation(buyer, seller, item)
    quote = sent_quote(conversation, seller, item)

    with pytest.raises(ValidationFailed):
        cart_service.add_variant_to_cart(
            buyer.id, variant.id, quote_id=quote.id)
    with pytest.raises(Forbidden):
        cart_service.add_variant_to_cart(
            other_buyer.id, variant.id, quote_id=quote.id)


def test_quote_gated_without_quote_is_blocked(buyer, quote_product):
    variant = variants_of(quote_product)[0]
    with pytest.raises(PurchaseBlocked) as exc:
        cart_service.add_variant_to_cart(buyer.id, variant.id)
    assert exc.value.validation.blocking_reason_codes == [
        PurchaseBlockReason.QUOTE_MISSING]
    assert exc.value.to_dict()['blocking_reason_codes'] == ['quote_missing']
    assert CartItem.query.count() == 0


def test_design_required(conversation, buyer, seller, design_product):
    first, second = variants_of(design_product)
    with pytest.raises(ValidationFailed):
        cart_service.add_variant_to_cart(buyer.id, first.id)

    design = approved_design(
        conversation, buyer, seller, ProductItem(design_product.id, first.id))
    with pytest.raises(ValidationFailed):
        cart_service.add_variant_to_cart(
            buyer.id, second.id, design_approval_id=design.id)

    line = cart_service.add_variant_to_cart(
        buyer.id, first.id, quantity=2, design_approval_id=design.id)
    assert line.design_approval_id == design.id
    assert line.quantity == 2
    assert line.effective_unit_price == Decimal('25.00')


def test_design_of_other_buyer_is_forbidden(
        conversation, buyer, other_buyer, seller, design_product):
    variant = variants_of(design_product)[0]
    design = approved_design(
        conversation, buyer, seller,
        ProductItem(design_product.id, variant.id))
    with pytest.raises(Forbidden):
        cart_service.add_variant_to_cart(
            other_buyer.id, variant.id, design_approval_id=design.id)


def test_legacy_design_accepted_for_single_variant(buyer, seller):
    product = make_product(seller, prices=('20.00',), title='Pin Badge')
    conversation = open_conversation(buyer, seller, ProductItem(product.id))
    legacy = DesignApproval(
        conversation_id=conversation.id,
        buyer_id=buyer.id,
        seller_id=seller.id,
        context=DesignContext.PRODUCT,
        product_id=product.id,
        status=DesignApprovalStatus.APPROVED,
        approved_at=datetime.utcnow(),
    )
    legacy.set_design_files(DESIGN_FILES)
    db.session.add(legacy)
    db.session.commit()

    variant = variants_of(product)[0]
    line = cart_service.add_variant_to_cart(
        buyer.id, variant.id, design_approval_id=legacy.id)
    assert line.design_approval_id == legacy.id


@pytest.mark.parametrize('quantity', [0, -1, 'two'])
def test_bad_quantity(buyer, plain_product, quantity):
    variant = variants_of(plain_product)[0]
    with pytest.raises(ValidationFailed):
        cart_service.add_variant_to_cart(
            buyer.id, variant.id, quantity=quantity)


def test_unknown_variant(buyer):
    with pytest.raises(NotFound):
        cart_service.add_variant_to_cart(buyer.id, 9999)


def test_inactive_product(buyer, plain_product):
    plain_product.is_active = False
    db.session.commit()
    with pytest.raises(NotFound):
        cart_service.add_variant_to_cart(
            buyer.id, variants_of(plain_product)[0].id)


def test_update_remove_and_clear(buyer, other_buyer, plain_product):
    variant = variants_of(plain_product)[0]
    line = cart_service.add_variant_to_cart(buyer.id, variant.id)

    cart_service.update_cart_item_quantity(line.id, buyer.id, 5)
    assert line.quantity == 5
    with pytest.raises(Forbidden):
        cart_service.update_cart_item_quantity(line.id, other_buyer.id, 1)
    with pytest.raises(ValidationFailed):
        cart_service.update_cart_item_quantity(line.id, buyer.id, 0)

    cart_service.remove_cart_item(line.id, buyer.id)
    assert cart_service.get_cart_items(buyer.id) == []

    cart_service.add_variant_to_cart(buyer.id, variant.id)
    cart_service.clear_cart(buyer.id)
    assert cart_service.get_cart_items(buyer.id) == []
