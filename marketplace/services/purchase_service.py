"""Decides whether a buyer may purchase a catalog item.

Two independent gates apply, driven by the item's flags:

* ``requires_quote`` is satisfied by an accepted, unexpired quote, or
  bypassed entirely by an approved product-context design for the exact
  variant/package (design-first purchase of a listed option).
* ``requires_design_approval`` is satisfied only by an approved
  product-context design for the exact variant/package.

Every unmet gate contributes one reason code and one message.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from marketplace.models import DesignApprovalStatus, QuoteStatus
from marketplace.services import design_service, quote_service
from marketplace.services.catalog_service import load_item
import enum
import logging

logger = logging.getLogger(__name__)


class PurchaseBlockReason(enum.Enum):
    ITEM_NOT_FOUND = 'item_not_found'
    QUOTE_MISSING = 'quote_missing'
    QUOTE_PENDING = 'quote_pending'
    QUOTE_REJECTED = 'quote_rejected'
    QUOTE_EXPIRED = 'quote_expired'
    DESIGN_MISSING = 'design_missing'
    DESIGN_PENDING = 'design_pending'
    DESIGN_REJECTED = 'design_rejected'
    DESIGN_CHANGES_REQUESTED = 'design_changes_requested'


BLOCK_MESSAGES = {
    PurchaseBlockReason.ITEM_NOT_FOUND:
        'This item is no longer available.',
    PurchaseBlockReason.QUOTE_MISSING:
        'A custom quote is required for this item. '
        'Please request a quote from the seller.',
    PurchaseBlockReason.QUOTE_PENDING:
        "Waiting for you to accept the seller's quote.",
    PurchaseBlockReason.QUOTE_REJECTED:
        "You rejected the seller's quote. "
        'Please request a new quote if interested.',
    PurchaseBlockReason.QUOTE_EXPIRED:
        "The seller's quote has expired. Please request a new quote.",
    PurchaseBlockReason.DESIGN_MISSING:
        'Design approval is required for this item. '
        'Please upload your design files in the messages.',
    PurchaseBlockReason.DESIGN_PENDING:
        'Waiting for the seller to approve your design.',
    PurchaseBlockReason.DESIGN_REJECTED:
        'The seller rejected your design. '
        'Please upload a new design or make requested changes.',
    PurchaseBlockReason.DESIGN_CHANGES_REQUESTED:
        'The seller requested changes to your design. '
        'Please update and resubmit.',
}

# Latest quote status -> reason, used when no accepted quote is valid.
# ACCEPTED only reaches this table once its expiry has passed.
QUOTE_STATUS_REASONS = {
    QuoteStatus.REQUESTED: PurchaseBlockReason.QUOTE_PENDING,
    QuoteStatus.SENT: PurchaseBlockReason.QUOTE_PENDING,
    QuoteStatus.PENDING: PurchaseBlockReason.QUOTE_PENDING,
    QuoteStatus.ACCEPTED: PurchaseBlockReason.QUOTE_EXPIRED,
    QuoteStatus.REJECTED: PurchaseBlockReason.QUOTE_REJECTED,
    QuoteStatus.EXPIRED: PurchaseBlockReason.QUOTE_EXPIRED,
    QuoteStatus.SUPERSEDED: PurchaseBlockReason.QUOTE_MISSING,
}

# Latest design status -> reason, used when no approved design exists.
DESIGN_STATUS_REASONS = {
    DesignApprovalStatus.PENDING: PurchaseBlockReason.DESIGN_PENDING,
    DesignApprovalStatus.UNDER_REVIEW: PurchaseBlockReason.DESIGN_PENDING,
    DesignApprovalStatus.RESUBMITTED: PurchaseBlockReason.DESIGN_PENDING,
    DesignApprovalStatus.APPROVED: PurchaseBlockReason.DESIGN_MISSING,
    DesignApprovalStatus.REJECTED: PurchaseBlockReason.DESIGN_REJECTED,
    DesignApprovalStatus.CHANGES_REQUESTED:
        PurchaseBlockReason.DESIGN_CHANGES_REQUESTED,
    DesignApprovalStatus.SUPERSEDED: PurchaseBlockReason.DESIGN_MISSING,
}


def _assert_exhaustive(table, members):
    missing = set(members) - set(table)
    if missing:
        values = sorted(m.value for m in missing)
        raise RuntimeError(f'Unmapped values: {values}')


_assert_exhaustive(QUOTE_STATUS_REASONS, QuoteStatus)
_assert_exhaustive(DESIGN_STATUS_REASONS, DesignApprovalStatus)
_assert_exhaustive(BLOCK_MESSAGES, PurchaseBlockReason)


@dataclass
class PurchaseValidation:
    can_purchase: bool = False
    requires_quote: bool = False
    requires_design_approval: bool = False
    quote_status: Optional[str] = None
    design_status: Optional[str] = None
    blocking_reason_codes: List[PurchaseBlockReason] = field(
        default_factory=list)
    missing_requirements: List[str] = field(default_factory=list)

    def block(self, reason):
        self.blocking_reason_codes.append(reason)
        self.missing_requirements.append(BLOCK_MESSAGES[reason])

    def to_dict(self):
        return {
            'can_purchase': self.can_purchase,
            'requires_quote': self.requires_quote,
            'requires_design_approval': self.requires_design_approval,
            'quote_status': self.quote_status,
            'design_status': self.design_status,
            'blocking_reason_codes': [
                c.value for c in self.blocking_reason_codes],
            'missing_requirements': list(self.missing_requirements),
        }


def _check_quote(result, buyer_id, item, now):
    quote = quote_service.get_active_quote_for_item(buyer_id, item, now=now)
    if quote:
        result.quote_status = quote.status.value
        return
    latest = quote_service.get_latest_quote_for_item(buyer_id, item)
    if latest is None:
        result.block(PurchaseBlockReason.QUOTE_MISSING)
        return
    result.quote_status = latest.status.value
    result.block(QUOTE_STATUS_REASONS[latest.status])


def _check_design(result, buyer_id, item, approved):
    if approved:
        result.design_status = approved.status.value
        return
    latest = design_service.get_latest_design_for_item(buyer_id, item)
    if latest is None:
        result.block(PurchaseBlockReason.DESIGN_MISSING)
        return
    result.design_status = latest.status.value
    result.block(DESIGN_STATUS_REASONS[latest.status])


def validate_purchase_requirements(item, buyer_id, skip_quote=False, now=None):
    """Evaluate both purchase gates for ``item``.

    ``skip_quote`` is set by callers that already hold an accepted quote
    for the purchase, such as a quote-backed cart line.
    """
    now = now or datetime.utcnow()
    result = PurchaseValidation()

    record = load_item(item)
    if record is None:
        result.block(PurchaseBlockReason.ITEM_NOT_FOUND)
        return result

    result.requires_quote = bool(record.requires_quote)
    result.requires_design_approval = bool(record.requires_design_approval)

    approved_design = None
    if result.requires_quote or result.requires_design_approval:
        approved_design = design_service.get_approved_design_for_item(
            buyer_id, item)

    if result.requires_quote and not skip_quote:
        if approved_design is not None:
            result.design_status = approved_design.status.value
        else:
            _check_quote(result, buyer_id, item, now)

    if result.requires_design_approval:
        _check_design(result, buyer_id, item, approved_design)

    result.can_purchase = not result.blocking_reason_codes
    if not result.can_purchase:
        logger.info(
            "Purchase of %s blocked for buyer %s: %s",
            item,
            buyer_id,
            [c.value for c in result.blocking_reason_codes],
        )
    return result
