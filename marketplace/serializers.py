from marketplace.utils import iso, money


def quote_payload(quote):
    return {
        'id': quote.id,
        'conversation_id': quote.conversation_id,
        'buyer_id': quote.buyer_id,
        'seller_id': quote.seller_id,
        'product_id': quote.product_id,
        'service_id': quote.service_id,
        'product_variant_id': quote.product_variant_id,
        'service_package_id': quote.service_package_id,
        'design_approval_id': quote.design_approval_id,
        'quantity': quote.quantity,
        'quoted_price': money(quote.quoted_price),
        'specifications': quote.specifications,
        'seller_notes': quote.seller_notes,
        'rejection_reason': quote.rejection_reason,
        'status': quote.status.value,
        'expires_at': iso(quote.expires_at),
        'created_at': iso(quote.created_at),
        'sent_at': iso(quote.sent_at),
        'accepted_at': iso(quote.accepted_at),
        'updated_at': iso(quote.updated_at),
    }


def design_payload(design):
    return {
        'id': design.id,
        'conversation_id': design.conversation_id,
        'buyer_id': design.buyer_id,
        'seller_id': design.seller_id,
        'context': design.context.value,
        'quote_id': design.quote_id,
        'product_id': design.product_id,
        'service_id': design.service_id,
        'variant_id': design.variant_id,
        'package_id': design.package_id,
        'design_files': design.get_design_files(),
        'status': design.status.value,
        'seller_notes': design.seller_notes,
        'approved_at': iso(design.approved_at),
        'created_at': iso(design.created_at),
        'updated_at': iso(design.updated_at),
    }


def cart_line_payload(line):
    variant = line.variant
    unit_price = line.effective_unit_price
    return {
        'id': line.id,
        'product_variant_id': line.product_variant_id,
        'product_id': variant.product_id,
        'variant': {
            'id': variant.id,
            'name': variant.name,
            'sku': variant.sku,
            'price': money(variant.price),
        },
        'product_title': variant.product.title,
        'quote_id': line.quote_id,
        'design_approval_id': line.design_approval_id,
        'quantity': line.quantity,
        'effective_unit_price': money(unit_price),
        'line_total': money(unit_price * line.quantity),
    }


def order_payload(order):
    return {
        'id': order.id,
        'buyer_id': order.buyer_id,
        'seller_id': order.seller_id,
        'product_id': order.product_id,
        'product_variant_id': order.product_variant_id,
        'quote_id': order.quote_id,
        'design_approval_id': order.design_approval_id,
        'quantity': order.quantity,
        'unit_price': money(order.unit_price),
        'total_amount': money(order.total_amount),
        'shipping_cost': money(order.shipping_cost),
        'status': order.status.value,
        'return_attempt_count': order.return_attempt_count,
        'created_at': iso(order.created_at),
    }


def booking_payload(booking):
    return {
        'id': booking.id,
        'buyer_id': booking.buyer_id,
        'seller_id': booking.seller_id,
        'service_id': booking.service_id,
        'service_package_id': booking.service_package_id,
        'quote_id': booking.quote_id,
        'design_approval_id': booking.design_approval_id,
        'amount': money(booking.amount),
        'status': booking.status.value,
        'scheduled_date': iso(booking.scheduled_date),
        'created_at': iso(booking.created_at),
    }


def transaction_payload(entry):
    return {
        'id': entry.id,
        'type': entry.type.value,
        'status': entry.status.value,
        'amount': money(entry.amount),
        'commission_rate': money(entry.commission_rate),
        'commission_amount': money(entry.commission_amount),
        'seller_payout': money(entry.seller_payout),
        'buyer_id': entry.buyer_id,
        'seller_id': entry.seller_id,
        'order_id': entry.order_id,
        'booking_id': entry.booking_id,
        'description': entry.description,
        'released_at': iso(entry.released_at),
        'created_at': iso(entry.created_at),
    }


def return_payload(request_):
    return {
        'id': request_.id,
        'buyer_id': request_.buyer_id,
        'seller_id': request_.seller_id,
        'order_id': request_.order_id,
        'booking_id': request_.booking_id,
        'reason': request_.reason.value,
        'description': request_.description,
        'evidence': request_.get_evidence(),
        'requested_refund_amount': money(request_.requested_refund_amount),
        'seller_status': (
            request_.seller_status.value if request_.seller_status
            else None),
        'seller_response': request_.seller_response,
        'seller_proposed_refund_amount': money(
            request_.seller_proposed_refund_amount),
        'approved_refund_amount': money(request_.approved_refund_amount),
        'admin_notes': request_.admin_notes,
        'admin_override': request_.admin_override,
        'commission_reversed_amount': money(
            request_.commission_reversed_amount),
        'status': request_.status.value,
        'refunded_at': iso(request_.refunded_at),
        'created_at': iso(request_.created_at),
    }
