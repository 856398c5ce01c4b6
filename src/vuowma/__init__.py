"""
VuOwma

Collects notification messages and forwards them in batches to a webhook
such as a Microsoft Teams Workflows integration.
"""

__version__ = "0.1.0"

from vuowma.forwarder import (
    Message,
    MessageForwarder,
    MessageFormat,
    ForwarderConfigError,
    WebhookDeliveryError,
)
from vuowma.dispatcher import BatchDispatcher, DispatchResult

__all__ = [
    "Message",
    "MessageForwarder",
    "MessageFormat",
    "ForwarderConfigError",
    "WebhookDeliveryError",
    "BatchDispatcher",
    "DispatchResult",
]
