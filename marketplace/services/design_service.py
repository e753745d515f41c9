from datetime import datetime
from sqlalchemy import update
from marketplace.extensions import db, atomic
from marketplace.errors import (
    NotFound,
    Forbidden,
    InvalidState,
    AlreadyApproved,
    QuoteNotAccepted,
    ValidationFailed,
)
from marketplace.models import (
    ConversationType,
    DesignApproval,
    DesignApprovalStatus,
    DesignContext,
    Product,
    ProductVariant,
    Quote,
    QuoteStatus,
    Service,
    ServicePackage,
    REVIEWABLE_DESIGN_STATUSES,
)
from marketplace.services.catalog_service import (
    ProductItem,
    ServiceItem,
    item_columns,
    item_filter,
    load_item,
    load_option,
)
from marketplace.services.conversation_service import (
    WORKFLOW_PRODUCT,
    add_workflow_context,
    create_conversation,
    get_conversation,
)
import logging

logger = logging.getLogger(__name__)

COPIED_DESIGN_SUBJECT = 'Design Approval - Copied from another variant'


def _clean_design_files(files):
    if not files:
        raise ValidationFailed('At least one design file is required')
    cleaned = []
    for f in files:
        if not isinstance(f, dict) or not f.get('url') or \
                not f.get('filename'):
            raise ValidationFailed('Each design file needs a url and filename')
        cleaned.append({
            'url': f['url'],
            'filename': f['filename'],
            'size': f.get('size'),
            'mime_type': f.get('mime_type') or f.get('mimeType'),
        })
    return cleaned


def _get_design(design_id):
    design = db.session.get(DesignApproval, design_id)
    if not design:
        raise NotFound('Design approval not found')
    return design


def _require_seller(design, seller_id):
    if design.seller_id != seller_id:
        logger.warning(
            "User %s attempted to review design %s assigned to %s",
            seller_id,
            design.id,
            design.seller_id,
        )
        raise Forbidden('Only the seller can review this design')


def _require_reviewable(design, action):
    if design.status not in REVIEWABLE_DESIGN_STATUSES:
        raise InvalidState(
            f'Cannot {action} design with status {design.status.value}')


def _require_notes(notes):
    if not notes or not notes.strip():
        raise ValidationFailed('Notes are required')
    return notes.strip()


def create_design_approval(
        conversation_id,
        buyer_id,
        item,
        design_files,
        context=DesignContext.PRODUCT,
        quote_id=None):
    conversation = get_conversation(conversation_id)
    if conversation.buyer_id != buyer_id:
        raise Forbidden('Only the buyer can submit designs')

    files = _clean_design_files(design_files)
    if load_item(item) is None:
        raise NotFound(f'{item.kind.capitalize()} not found')
    load_option(item)

    if context == DesignContext.PRODUCT and item.option_id is None:
        raise ValidationFailed(
            'Select a variant or package for a product design')
    if context == DesignContext.QUOTE and item.option_id is not None:
        raise ValidationFailed(
            'Quote designs cannot target a variant or package')
    if quote_id is not None:
        if context != DesignContext.QUOTE:
            raise ValidationFailed('Only quote designs can link a quote')
        quote = db.session.get(Quote, quote_id)
        if not quote or quote.conversation_id != conversation.id:
            raise ValidationFailed(
                'Quote does not belong to this conversation')

    option = {}
    if isinstance(item, ProductItem):
        option['variant_id'] = item.variant_id
    else:
        option['package_id'] = item.package_id

    with atomic():
        db.session.execute(
            update(DesignApproval)
            .where(
                DesignApproval.conversation_id == conversation.id,
                DesignApproval.status ==
                DesignApprovalStatus.CHANGES_REQUESTED,
            )
            .values(
                status=DesignApprovalStatus.SUPERSEDED,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session='fetch')
        )
        design = DesignApproval(
            conversation_id=conversation.id,
            buyer_id=conversation.buyer_id,
            seller_id=conversation.seller_id,
            context=context,
            quote_id=quote_id,
            status=DesignApprovalStatus.PENDING,
            **item_columns(item),
            **option,
        )
        design.set_design_files(files)
        db.session.add(design)
        add_workflow_context(conversation, WORKFLOW_PRODUCT)

    logger.info(
        "Design approval %s submitted in conversation %s",
        design.id,
        conversation.id,
    )
    return design


def approve_design(design_id, seller_id, notes=None):
    design = _get_design(design_id)
    _require_seller(design, seller_id)
    if design.status == DesignApprovalStatus.APPROVED:
        raise AlreadyApproved('Design is already approved')
    _require_reviewable(design, 'approve')
    if design.quote_id is not None:
        quote = db.session.get(Quote, design.quote_id)
        if not quote or quote.status != QuoteStatus.ACCEPTED:
            raise QuoteNotAccepted(
                'The linked quote must be accepted before approving')

    design.status = DesignApprovalStatus.APPROVED
    design.approved_at = datetime.utcnow()
    if notes:
        design.seller_notes = notes
    db.session.commit()
    logger.info("Design approval %s approved", design.id)
    return design


def reject_design(design_id, seller_id, notes):
    design = _get_design(design_id)
    _require_seller(design, seller_id)
    notes = _require_notes(notes)
    _require_reviewable(design, 'reject')

    design.status = DesignApprovalStatus.REJECTED
    design.seller_notes = notes
    db.session.commit()
    logger.info("Design approval %s rejected", design.id)
    return design


def request_design_changes(design_id, seller_id, notes):
    design = _get_design(design_id)
    _require_seller(design, seller_id)
    notes = _require_notes(notes)
    _require_reviewable(design, 'request changes on')

    design.status = DesignApprovalStatus.CHANGES_REQUESTED
    design.seller_notes = notes
    db.session.commit()
    logger.info("Changes requested on design approval %s", design.id)
    return design


def resubmit_design(design_id, buyer_id, new_files):
    design = _get_design(design_id)
    if design.buyer_id != buyer_id:
        raise Forbidden('Only the buyer can resubmit this design')
    if design.status != DesignApprovalStatus.CHANGES_REQUESTED:
        raise InvalidState(
            'Only designs with requested changes can be resubmitted')

    design.set_design_files(_clean_design_files(new_files))
    design.status = DesignApprovalStatus.RESUBMITTED
    db.session.commit()
    logger.info("Design approval %s resubmitted", design.id)
    return design


def _resolve_copy_target(source, target_variant_id, target_package_id):
    if (target_variant_id is None) == (target_package_id is None):
        raise ValidationFailed(
            'Specify exactly one of target variant or target package')

    # Quote designs may move to any item of the same seller
    catalog_scoped = source.context == DesignContext.PRODUCT

    if target_variant_id is not None:
        variant = db.session.get(ProductVariant, target_variant_id)
        if not variant:
            raise NotFound('Target variant not found')
        if catalog_scoped and variant.product_id != source.product_id:
            raise ValidationFailed(
                'Target variant must belong to the same product')
        product = db.session.get(Product, variant.product_id)
        if not product or product.seller_id != source.seller_id:
            raise ValidationFailed(
                'Target variant must belong to the same seller')
        return ProductItem(product.id, variant.id)

    package = db.session.get(ServicePackage, target_package_id)
    if not package:
        raise NotFound('Target package not found')
    if catalog_scoped and package.service_id != source.service_id:
        raise ValidationFailed(
            'Target package must belong to the same service')
    service = db.session.get(Service, package.service_id)
    if not service or service.seller_id != source.seller_id:
        raise ValidationFailed(
            'Target package must belong to the same seller')
    return ServiceItem(service.id, package.id)


def copy_design_approval_to_target(
        source_id,
        buyer_id,
        target_variant_id=None,
        target_package_id=None):
    """Reuse an approved design for another variant or package.

    Creates a new conversation and a new approved record; the source is
    never modified. Calling again for the same target returns the record
    created the first time.
    """
    with atomic():
        # Locking the source serialises concurrent copies of it
        source = DesignApproval.query.filter_by(
            id=source_id
        ).populate_existing().with_for_update().first()
        if not source:
            raise NotFound('Design approval not found')
        if source.buyer_id != buyer_id:
            raise Forbidden('You can only copy your own designs')
        if source.status != DesignApprovalStatus.APPROVED:
            raise InvalidState('Only approved designs can be copied')

        target = _resolve_copy_target(
            source, target_variant_id, target_package_id)

        existing = DesignApproval.query.filter(
            DesignApproval.buyer_id == buyer_id,
            DesignApproval.seller_id == source.seller_id,
            DesignApproval.context == DesignContext.PRODUCT,
            DesignApproval.quote_id.is_(None),
            DesignApproval.status == DesignApprovalStatus.APPROVED,
            *item_filter(DesignApproval, target, match_option=True),
        ).order_by(DesignApproval.approved_at.desc()).first()
        if existing:
            logger.info(
                "Design copy of %s reused existing approval %s",
                source.id,
                existing.id,
            )
            return existing

        option = {}
        if isinstance(target, ProductItem):
            option['variant_id'] = target.variant_id
        else:
            option['package_id'] = target.package_id

        conversation = create_conversation(
            buyer_id,
            source.seller_id,
            type=ConversationType.DESIGN_APPROVAL,
            subject=COPIED_DESIGN_SUBJECT,
            item=target,
        )
        add_workflow_context(conversation, WORKFLOW_PRODUCT)
        copy = DesignApproval(
            conversation_id=conversation.id,
            buyer_id=buyer_id,
            seller_id=source.seller_id,
            context=DesignContext.PRODUCT,
            status=DesignApprovalStatus.APPROVED,
            seller_notes=source.seller_notes,
            approved_at=datetime.utcnow(),
            **item_columns(target),
            **option,
        )
        copy.set_design_files(source.get_design_files())
        db.session.add(copy)

    logger.info(
        "Design approval %s copied to %s as %s",
        source.id,
        target,
        copy.id,
    )
    return copy


def get_approved_design_for_item(buyer_id, item):
    """Approved catalog design for the buyer; quote designs never count."""
    approved = DesignApproval.query.filter(
        DesignApproval.buyer_id == buyer_id,
        DesignApproval.context == DesignContext.PRODUCT,
        DesignApproval.status == DesignApprovalStatus.APPROVED,
        *item_filter(DesignApproval, item, match_option=True),
    ).order_by(DesignApproval.approved_at.desc()).first()
    if approved or not isinstance(item, ProductItem) or \
            item.variant_id is None:
        return approved

    # Legacy approvals predate variant scoping
    product = db.session.get(Product, item.product_id)
    if not product or product.variants.count() != 1:
        return None
    return DesignApproval.query.filter(
        DesignApproval.buyer_id == buyer_id,
        DesignApproval.context == DesignContext.PRODUCT,
        DesignApproval.status == DesignApprovalStatus.APPROVED,
        DesignApproval.product_id == item.product_id,
        DesignApproval.variant_id.is_(None),
    ).order_by(DesignApproval.approved_at.desc()).first()


def get_latest_design_for_item(buyer_id, item):
    return DesignApproval.query.filter(
        DesignApproval.buyer_id == buyer_id,
        DesignApproval.context == DesignContext.PRODUCT,
        *item_filter(DesignApproval, item, match_option=True),
    ).order_by(
        DesignApproval.created_at.desc(),
        DesignApproval.id.desc(),
    ).first()


def get_approved_design_for_conversation(conversation_id):
    return DesignApproval.query.filter(
        DesignApproval.conversation_id == conversation_id,
        DesignApproval.status == DesignApprovalStatus.APPROVED,
    ).order_by(DesignApproval.approved_at.desc()).first()


def get_approved_designs_library(buyer_id):
    return DesignApproval.query.filter(
        DesignApproval.buyer_id == buyer_id,
        DesignApproval.context == DesignContext.PRODUCT,
        DesignApproval.status == DesignApprovalStatus.APPROVED,
    ).order_by(DesignApproval.approved_at.desc()).all()


def get_product_approved_variants(buyer_id, product_id):
    rows = db.session.query(DesignApproval.variant_id).filter(
        DesignApproval.buyer_id == buyer_id,
        DesignApproval.product_id == product_id,
        DesignApproval.context == DesignContext.PRODUCT,
        DesignApproval.status == DesignApprovalStatus.APPROVED,
        DesignApproval.variant_id.isnot(None),
    ).distinct().all()
    return sorted(row[0] for row in rows)


def get_design_for_participant(design_id, user_id):
    design = _get_design(design_id)
    if user_id not in (design.buyer_id, design.seller_id):
        raise Forbidden('You do not have access to this design')
    return design
