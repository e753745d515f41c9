"""Live conversation connections.

``ConversationRegistry`` maps a conversation id to the set of connection
handles currently listening to it. A handle is any object exposing
``user_id`` and ``send(message)``; the transport behind it is not this
module's concern. One registry lives on each app (see ``create_app``), so
tests can swap in their own.
"""
from collections import defaultdict
from threading import RLock
import json
import logging

logger = logging.getLogger(__name__)


class ConversationRegistry:

    def __init__(self):
        self._lock = RLock()
        self._by_conversation = defaultdict(set)

    def join(self, conversation_id, handle):
        with self._lock:
            self._by_conversation[conversation_id].add(handle)
        logger.debug(
            "User %s joined conversation %s",
            getattr(handle, 'user_id', None),
            conversation_id,
        )

    def leave(self, handle, conversation_id=None):
        with self._lock:
            if conversation_id is not None:
                ids = [conversation_id]
            else:
                ids = list(self._by_conversation)
            for cid in ids:
                handles = self._by_conversation.get(cid)
                if not handles:
                    continue
                handles.discard(handle)
                if not handles:
                    del self._by_conversation[cid]

    def connections(self, conversation_id):
        with self._lock:
            return set(self._by_conversation.get(conversation_id, ()))

    def broadcast(self, conversation_id, message, exclude_user_id=None):
        """Send ``message`` to every listener; returns the delivery count.

        A handle whose ``send`` fails is dropped from the registry.
        """
        if not isinstance(message, str):
            message = json.dumps(message, ensure_ascii=False, default=str)
        delivered = 0
        for handle in self.connections(conversation_id):
            if exclude_user_id is not None and \
                    getattr(handle, 'user_id', None) == exclude_user_id:
                continue
            try:
                handle.send(message)
                delivered += 1
            except Exception as e:
                logger.warning(
                    "Dropping connection for conversation %s: %s",
                    conversation_id,
                    e,
                )
                self.leave(handle, conversation_id)
        return delivered
