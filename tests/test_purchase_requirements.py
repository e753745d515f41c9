from datetime import datetime, timedelta
import pytest
from marketplace.services import design_service, quote_service
from marketplace.services.catalog_service import ProductItem, ServiceItem
from marketplace.services.purchase_service import (
    BLOCK_MESSAGES,
    PurchaseBlockReason,
    validate_purchase_requirements,
)
from factories import (
    approved_design,
    open_conversation,
    packages_of,
    sent_quote,
    submit_design,
    variants_of,
)


def _codes(result):
    return [c.value for c in result.blocking_reason_codes]


@pytest.fixture
def design_item(design_product):
    return ProductItem(design_product.id, variants_of(design_product)[0].id)


@pytest.fixture
def quote_item(quote_product):
    return ProductItem(quote_product.id, variants_of(quote_product)[0].id)


@pytest.fixture
def quote_conversation(buyer, seller, quote_product):
    return open_conversation(buyer, seller, ProductItem(quote_product.id))


def test_missing_item(buyer):
    result = validate_purchase_requirements(ProductItem(9999), buyer.id)
    assert not result.can_purchase
    assert _codes(result) == ['item_not_found']


def test_ungated_item_is_purchasable(buyer, plain_product):
    item = ProductItem(plain_product.id, variants_of(plain_product)[0].id)
    result = validate_purchase_requirements(item, buyer.id)
    assert result.can_purchase
    assert result.blocking_reason_codes == []
    assert not result.requires_quote
    assert not result.requires_design_approval


def test_design_gate_reasons(conversation, buyer, seller, design_item):
    result = validate_purchase_requirements(design_item, buyer.id)
    assert _codes(result) == ['design_missing']
    assert result.missing_requirements == [
        BLOCK_MESSAGES[PurchaseBlockReason.DESIGN_MISSING]]

    design = submit_design(conversation, buyer, design_item)
    result = validate_purchase_requirements(design_item, buyer.id)
    assert _codes(result) == ['design_pending']
    assert result.design_status == 'pending'

    design_service.request_design_changes(design.id, seller.id, 'Bigger')
    result = validate_purchase_requirements(design_item, buyer.id)
    assert _codes(result) == ['design_changes_requested']

    design_service.resubmit_design(design.id, buyer.id, [
        {'url': 'https://cdn.example.com/v2.png', 'filename': 'v2.png'}])
    result = validate_purchase_requirements(design_item, buyer.id)
    assert _codes(result) == ['design_pending']

    design_service.reject_design(design.id, seller.id, 'Not printable')
    result = validate_purchase_requirements(design_item, buyer.id)
    assert _codes(result) == ['design_rejected']

    approved_design(conversation, buyer, seller, design_item)
    result = validate_purchase_requirements(design_item, buyer.id)
    assert result.can_purchase
    assert result.design_status == 'approved'


def test_design_is_scoped_to_variant(
        conversation, buyer, seller, design_product, design_item):
    approved_design(conversation, buyer, seller, design_item)
    other = ProductItem(design_product.id, variants_of(design_product)[1].id)
    result = validate_purchase_requirements(other, buyer.id)
    assert _codes(result) == ['design_missing']


def test_quote_gate_reasons(
        quote_conversation, buyer, seller, quote_product, quote_item):
    result = validate_purchase_requirements(quote_item, buyer.id)
    assert _codes(result) == ['quote_missing']

    quote_service.request_quote(
        quote_conversation.id, buyer.id, ProductItem(quote_product.id))
    result = validate_purchase_requirements(quote_item, buyer.id)
    assert _codes(result) == ['quote_pending']
    assert result.quote_status == 'requested'

    quote = sent_quote(quote_conversation, seller, quote_item)
    result = validate_purchase_requirements(quote_item, buyer.id)
    assert _codes(result) == ['quote_pending']
    assert result.quote_status == 'sent'

    quote_service.reject_quote(quote.id, buyer.id)
    result = validate_purchase_requirements(quote_item, buyer.id)
    assert _codes(result) == ['quote_rejected']


def test_expired_quote_reason(quote_conversation, buyer, seller, quote_item):
    sent_quote(quote_conversation, seller, quote_item)
    quote_service.expire_old_quotes(
        now=datetime.utcnow() + timedelta(days=2))
    result = validate_purchase_requirements(quote_item, buyer.id)
    assert _codes(result) == ['quote_expired']


def test_accepted_quote_past_expiry_blocks(
        quote_conversation, buyer, seller, quote_item):
    quote = sent_quote(quote_conversation, seller, quote_item)
    quote_service.accept_quote(quote.id, buyer.id)

    assert validate_purchase_requirements(quote_item, buyer.id).can_purchase

    later = datetime.utcnow() + timedelta(days=2)
    result = validate_purchase_requirements(quote_item, buyer.id, now=later)
    assert _codes(result) == ['quote_expired']


def test_approved_design_bypasses_quote(
        quote_conversation, buyer, seller, quote_item):
    approved_design(quote_conversation, buyer, seller, quote_item)

    result = validate_purchase_requirements(quote_item, buyer.id)

    assert result.can_purchase
    assert result.requires_quote
    assert result.quote_status is None
    assert result.blocking_reason_codes == []


def test_both_gates_report_both_reasons(buyer, seller, gated_product):
    item = ProductItem(gated_product.id, variants_of(gated_product)[0].id)
    result = validate_purchase_requirements(item, buyer.id)
    assert _codes(result) == ['quote_missing', 'design_missing']
    assert len(result.missing_requirements) == 2

    conversation = open_conversation(buyer, seller, item)
    approved_design(conversation, buyer, seller, item)
    assert validate_purchase_requirements(item, buyer.id).can_purchase


def test_skip_quote(buyer, quote_item):
    result = validate_purchase_requirements(
        quote_item, buyer.id, skip_quote=True)
    assert result.can_purchase


def test_service_item(buyer, service):
    item = ServiceItem(service.id, packages_of(service)[0].id)
    result = validate_purchase_requirements(item, buyer.id)
    assert _codes(result) == ['quote_missing']


def test_to_dict(buyer, design_item):
    data = validate_purchase_requirements(design_item, buyer.id).to_dict()
    assert data['can_purchase'] is False
    assert data['requires_design_approval'] is True
    assert data['blocking_reason_codes'] == ['design_missing']
    assert data['missing_requirements'] == [
        BLOCK_MESSAGES[PurchaseBlockReason.DESIGN_MISSING]]
