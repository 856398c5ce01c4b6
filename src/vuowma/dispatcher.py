"""
Batch dispatching.

Groups pending messages into a batch and hands it to the forwarder together
with any batches that failed to send on earlier runs.
"""

from dataclasses import dataclass, field
from typing import List, Optional

import structlog

from vuowma.forwarder import MessageForwarder, WebhookDeliveryError
from vuowma.state.database import MessageStore

logger = structlog.get_logger(__name__)


@dataclass
class DispatchResult:
    """Outcome of a single dispatch run."""
    batch_id: Optional[int] = None
    message_count: int = 0
    resent_batches: List[int] = field(default_factory=list)
    sent: bool = False

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "batch_id": self.batch_id,
            "message_count": self.message_count,
            "resent_batches": self.resent_batches,
            "sent": self.sent,
        }


class BatchDispatcher:
    """
    Runs one forwarding pass over the message store.

    A batch is only marked sent once the webhook accepts it. Batches left
    unsent are re-announced on the next run.
    """

    def __init__(self, store: MessageStore, forwarder: MessageForwarder):
        self.store = store
        self.forwarder = forwarder

    def run_once(self) -> DispatchResult:
        """
        Forward all pending messages.

        Raises:
            WebhookDeliveryError: If the webhook rejected the batch
        """
        messages = self.store.load_pending_messages()
        batch_id = self.store.create_batch(messages) if messages else None
        unsent = self.store.load_unsent_batch_ids(exclude=batch_id)

        result = DispatchResult(
            batch_id=batch_id,
            message_count=len(messages),
            resent_batches=unsent,
        )
        if not messages and not unsent:
            logger.debug("dispatch_nothing_pending")
            return result

        try:
            self.forwarder.forward(messages, batch_id, unsent)
        except WebhookDeliveryError:
            logger.warning(
                "dispatch_failed",
                batch_id=batch_id,
                unsent_batches=unsent,
            )
            raise

        sent_ids = list(unsent)
        if batch_id is not None:
            sent_ids.append(batch_id)
        self.store.mark_batches_sent(sent_ids)
        result.sent = True
        return result
