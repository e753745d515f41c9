from datetime import datetime, timedelta
from marketplace.extensions import db
from marketplace.models import AuditLog, Quote, QuoteStatus
from marketplace.services.catalog_service import ProductItem
from factories import (
    DESIGN_FILES,
    login,
    open_conversation,
    sent_quote,
    variants_of,
)


def test_api_requires_login(client):
    response = client.get('/api/cart')
    assert response.status_code == 401
    assert response.get_json()['login_required'] is True


def test_login_and_me(client, buyer):
    response = client.post('/api/auth/login', json={
        'email': 'buyer@example.com', 'password': 'secret123'})
    assert response.status_code == 200
    assert response.get_json()['role'] == 'BUYER'

    me = client.get('/api/auth/me').get_json()
    assert me['id'] == buyer.id
    assert AuditLog.query.filter_by(action='LOGIN_SUCCESS').count() == 1


def test_login_failure(client, buyer):
    response = client.post('/api/auth/login', json={
        'email': 'buyer@example.com', 'password': 'wrong'})
    assert response.status_code == 401
    assert AuditLog.query.filter_by(action='LOGIN_FAILED').count() == 1


def test_unknown_route_is_json(client, buyer):
    login(client, buyer)
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json()['code'] == 'not_found'


def test_quote_flow_over_http(client, buyer, other_buyer, seller,
                              quote_product):
    variant = variants_of(quote_product)[0]
    conversation = open_conversation(
        buyer, seller, ProductItem(quote_product.id))

    login(client, seller)
    response = client.post(
        f'/api/conversations/{conversation.id}/quotes',
        json={
            'product_id': quote_product.id,
            'variant_id': variant.id,
            'quoted_price': '45.00',
            'quantity': 3,
        })
    assert response.status_code == 201
    quote_id = response.get_json()['id']
    assert response.get_json()['status'] == 'sent'

    login(client, other_buyer)
    response = client.post(f'/api/quotes/{quote_id}/accept')
    assert response.status_code == 403
    assert response.get_json()['code'] == 'forbidden'

    login(client, buyer)
    active = client.get(
        f'/api/conversations/{conversation.id}/active-quote').get_json()
    assert active['quote']['id'] == quote_id

    response = client.post(f'/api/quotes/{quote_id}/accept')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'accepted'

    response = client.post(f'/api/quotes/{quote_id}/accept')
    assert response.status_code == 400
    assert response.get_json()['code'] == 'invalid_state'

    cart = client.get('/api/cart').get_json()
    assert len(cart['items']) == 1
    assert cart['items'][0]['quote_id'] == quote_id
    assert cart['items'][0]['effective_unit_price'] == 45.0
    assert cart['subtotal'] == 135.0
    assert AuditLog.query.filter_by(action='QUOTE_ACCEPT').count() == 1


def test_expired_accept_over_http(client, buyer, seller, quote_product):
    item = ProductItem(quote_product.id, variants_of(quote_product)[0].id)
    conversation = open_conversation(buyer, seller, item)
    quote = sent_quote(conversation, seller, item)
    quote.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.session.commit()

    login(client, buyer)
    response = client.post(f'/api/quotes/{quote.id}/accept')

    assert response.status_code == 400
    assert response.get_json()['code'] == 'expired'
    assert db.session.get(Quote, quote.id).status == QuoteStatus.EXPIRED


def test_missing_quote_is_404(client, buyer):
    login(client, buyer)
    response = client.post('/api/quotes/999/accept')
    assert response.status_code == 404
    assert response.get_json()['code'] == 'not_found'


def test_blocked_add_to_cart_reports_reasons(client, buyer, quote_product):
    login(client, buyer)
    response = client.post('/api/cart', json={
        'product_variant_id': variants_of(quote_product)[0].id})

    assert response.status_code == 409
    body = response.get_json()
    assert body['code'] == 'purchase_blocked'
    assert body['blocking_reason_codes'] == ['quote_missing']
    assert len(body['missing_requirements']) == 1


def test_purchase_requirements_endpoint(client, buyer, gated_product):
    login(client, buyer)
    response = client.post('/api/purchase-requirements', json={
        'product_id': gated_product.id,
        'variant_id': variants_of(gated_product)[0].id,
    })
    assert response.status_code == 200
    body = response.get_json()
    assert body['can_purchase'] is False
    assert body['blocking_reason_codes'] == ['quote_missing', 'design_missing']

    response = client.post('/api/purchase-requirements', json={
        'product_id': gated_product.id, 'service_id': 1})
    assert response.status_code == 400
    assert response.get_json()['code'] == 'validation_failed'


def test_design_flow_over_http(client, buyer, seller, conversation,
                               design_product):
    first, second = variants_of(design_product)

    login(client, buyer)
    response = client.post(
        f'/api/conversations/{conversation.id}/design-approvals',
        json={
            'product_id': design_product.id,
            'variant_id': first.id,
            'design_files': DESIGN_FILES,
        })
    assert response.status_code == 201
    design_id = response.get_json()['id']

    login(client, seller)
    response = client.post(f'/api/design-approvals/{design_id}/approve')
    assert response.status_code == 200
    assert response.get_json()['status'] == 'approved'

    response = client.post(f'/api/design-approvals/{design_id}/approve')
    assert response.status_code == 400
    assert response.get_json()['code'] == 'already_approved'

    login(client, buyer)
    response = client.post(
        f'/api/design-approvals/{design_id}/copy',
        json={'target_variant_id': second.id})
    assert response.status_code == 201

    variants = client.get(
        f'/api/products/{design_product.id}/approved-variants').get_json()
    assert variants['variant_ids'] == sorted([first.id, second.id])

    response = client.post('/api/cart', json={
        'product_variant_id': first.id,
        'design_approval_id': design_id,
        'quantity': 2,
    })
    assert response.status_code == 201
    assert response.get_json()['quantity'] == 2


def test_admin_routes_need_admin(client, buyer, admin):
    login(client, buyer)
    response = client.get('/api/admin/transactions')
    assert response.status_code == 403

    login(client, admin)
    response = client.get('/api/admin/transactions')
    assert response.status_code == 200
    assert response.get_json()['items'] == []


def test_deactivated_session_is_dropped(client, buyer):
    login(client, buyer)
    assert client.get('/api/cart').status_code == 200

    buyer.is_active = False
    db.session.commit()

    response = client.get('/api/cart')
    assert response.status_code == 403
    assert client.get('/api/cart').status_code == 401


def test_switching_login_changes_acting_user(client, buyer, seller):
    login(client, buyer)
    assert client.get('/api/auth/me').get_json()['id'] == buyer.id

    login(client, seller)
    assert client.get('/api/auth/me').get_json()['id'] == seller.id
