from marketplace.extensions import db
from marketplace.errors import NotFound, Forbidden
from marketplace.models import Conversation, ConversationType
from marketplace.services.catalog_service import ProductItem, ServiceItem
import logging

logger = logging.getLogger(__name__)

WORKFLOW_QUOTE = 'quote'
WORKFLOW_PRODUCT = 'product'


def get_conversation(conversation_id):
    conversation = db.session.get(Conversation, conversation_id)
    if not conversation:
        raise NotFound('Conversation not found')
    return conversation


def require_participant(conversation, user_id):
    if not conversation.is_participant(user_id):
        logger.warning(
            "User %s is not a participant of conversation %s",
            user_id,
            conversation.id,
        )
        raise Forbidden('You are not a participant in this conversation')
    return conversation


def add_workflow_context(conversation, context):
    contexts = conversation.get_workflow_contexts()
    if context not in contexts:
        contexts.append(context)
        conversation.set_workflow_contexts(contexts)
    return conversation


def create_conversation(
        buyer_id,
        seller_id,
        type=ConversationType.GENERAL,
        subject=None,
        item=None):
    """Add a conversation to the session without committing it."""
    conversation = Conversation(
        buyer_id=buyer_id,
        seller_id=seller_id,
        type=type,
        subject=subject,
        product_id=item.product_id if isinstance(item, ProductItem) else None,
        service_id=item.service_id if isinstance(item, ServiceItem) else None,
    )
    db.session.add(conversation)
    db.session.flush()
    return conversation
