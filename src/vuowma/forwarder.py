"""
Message forwarding to the outgoing webhook.

Combines the pending messages of a batch into a single card, translates it
into the configured wire format and posts it to the webhook.
"""

import json
from enum import Enum
from typing import Optional, Protocol, Sequence

import httpx
import structlog

from vuowma.config import ForwarderSettings

logger = structlog.get_logger(__name__)


BLANK_MESSAGE = (
    '{"@context":"https://schema.org/extensions",'
    '"@type":"MessageCard","themeColor":"0072C6","title":"VuOwma Message",'
    '"text":""}'
)

NO_MESSAGE_TEXT = "--no message provided--"

# Titles that count as empty, including the string "0"
EMPTY_TITLES = (None, False, 0, "", "0", [], {})

ADAPTIVE_CARD_CONTENT_TYPE = "application/vnd.microsoft.card.adaptive"
ADAPTIVE_CARD_SCHEMA = "http://adaptivecards.io/schemas/adaptive-card.json"


class Message(Protocol):
    """A stored message exposing its raw JSON payload."""

    def get_data(self) -> str:
        ...


class MessageFormat(str, Enum):
    """Card formats accepted by the webhook."""
    MESSAGECARD = "messagecard"
    ADAPTIVECARD = "adaptivecard"

    @classmethod
    def parse(cls, value: Optional[str]) -> "MessageFormat":
        """Anything other than messagecard selects adaptivecard."""
        if value is None or value.strip().lower() == cls.MESSAGECARD.value:
            return cls.MESSAGECARD
        return cls.ADAPTIVECARD


class ForwarderConfigError(Exception):
    """Required forwarder settings are missing."""
    pass


class WebhookDeliveryError(Exception):
    """The webhook did not accept the forwarded message."""

    def __init__(self, webhook_url: str, status_code: Optional[int], body: str):
        self.webhook_url = webhook_url
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"Problem sending message to {webhook_url}. "
            f"Status: {status_code}. Body: {body}"
        )


class MessageForwarder:
    """
    Forwards batches of stored messages to a webhook.

    Each call to forward() performs at most one POST. Failed batches are
    not retried here; the caller passes them back in as unsent batches on
    a later run so they are re-announced.
    """

    def __init__(
        self,
        base_url: Optional[str],
        webhook_url: Optional[str],
        client: Optional[httpx.Client] = None,
        message_format: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the forwarder.

        Args:
            base_url: Public VuOwma URL, used to build links back to batches
            webhook_url: Destination of the POST
            client: HTTP client to use. A new one is created if not provided.
            message_format: "messagecard" (default) or any other value for adaptivecard
            timeout: Request timeout for a client created here

        Raises:
            ForwarderConfigError: If either URL is missing
        """
        if not base_url or not webhook_url:
            raise ForwarderConfigError(
                "base_url and webhook_url settings are both required!"
            )
        self.base_url = base_url
        self.webhook_url = webhook_url
        self.message_format = MessageFormat.parse(message_format)
        self._owns_client = client is None
        self.client = client if client is not None else httpx.Client(timeout=timeout)

    @classmethod
    def from_config(
        cls,
        config: ForwarderSettings,
        client: Optional[httpx.Client] = None,
    ) -> "MessageForwarder":
        """Create a forwarder from settings."""
        return cls(
            base_url=config.base_url,
            webhook_url=config.webhook_url,
            client=client,
            message_format=config.message_format,
            timeout=config.http_timeout_seconds,
        )

    def close(self) -> None:
        """Close the HTTP client if this forwarder created it."""
        if self._owns_client:
            self.client.close()

    def __enter__(self) -> "MessageForwarder":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def batch_link(self, batch_id: Optional[int]) -> str:
        """Markdown link to a batch on the public endpoint."""
        # An absent id renders as an empty string in both label and query
        label = "" if batch_id is None else str(batch_id)
        return f"[batch {label}]({self.base_url}?batch={label})"

    def build_message(
        self,
        messages: Sequence[Message],
        batch_id: Optional[int],
        unsent_batches: Sequence[int],
    ) -> dict:
        """
        Combine a batch into a single MessageCard-shaped mapping.

        Args:
            messages: Pending messages of the current batch
            batch_id: ID of the current batch
            unsent_batches: IDs of batches that failed to send earlier

        Returns:
            New mapping; the input messages are left untouched
        """
        data = messages[0].get_data() if messages else BLANK_MESSAGE
        try:
            message = json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning("message_payload_invalid", batch_id=batch_id, error=str(e))
            message = None
        if not isinstance(message, dict):
            message = {}

        if message.get("text") is None:
            message["text"] = NO_MESSAGE_TEXT

        # Each resend notice goes on top, so the last id ends up first
        for unsent_batch in unsent_batches:
            message["text"] = (
                f"Resending previously failed {self.batch_link(unsent_batch)}  \n"
                f"{message['text']}"
            )

        if len(messages) > 1:
            message["text"] = (
                f"{len(messages)} log messages in {self.batch_link(batch_id)}  \n"
                f"First message: {message['text']}"
            )

        return message

    def format_message(self, message: dict) -> dict:
        """
        Reformat a message for the configured card format.

        MessageCards are passed through unchanged; anything else is
        translated into an AdaptiveCard attachment.
        """
        if self.message_format == MessageFormat.MESSAGECARD:
            return message

        body: list = []
        if message.get("title") not in EMPTY_TITLES:
            body.append({
                "type": "TextBlock",
                "text": f"**{message['title']}**",
                "size": "large",
            })
        body.append({
            "type": "TextBlock",
            "text": message["text"],
            "wrap": True,
        })
        return {
            "type": "message",
            "attachments": [
                {
                    "contentType": ADAPTIVE_CARD_CONTENT_TYPE,
                    "contentUrl": None,
                    "content": {
                        "$schema": ADAPTIVE_CARD_SCHEMA,
                        "type": "AdaptiveCard",
                        "version": "1.2",
                        "body": body,
                        "msteams": {"width": "Full"},
                    },
                },
            ],
        }

    def forward(
        self,
        messages: Sequence[Message],
        batch_id: Optional[int],
        unsent_batches: Sequence[int],
    ) -> None:
        """
        Forward locally stored messages to the webhook.

        Args:
            messages: Pending messages loaded from the database
            batch_id: The ID of the batch currently being processed
            unsent_batches: IDs of batches that should have been sent earlier
                but failed for some reason

        Raises:
            WebhookDeliveryError: If the webhook rejects the message or
                cannot be reached
        """
        if not messages and not unsent_batches:
            # nothing to do:
            return

        payload = self.format_message(
            self.build_message(messages, batch_id, unsent_batches)
        )

        try:
            response = self.client.post(
                self.webhook_url,
                content=json.dumps(payload),
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            logger.error("webhook_request_error", webhook_url=self.webhook_url, error=str(e))
            raise WebhookDeliveryError(self.webhook_url, None, str(e)) from e

        if not response.is_success:
            logger.error(
                "webhook_delivery_failed",
                webhook_url=self.webhook_url,
                status=response.status_code,
                body=response.text,
            )
            raise WebhookDeliveryError(
                self.webhook_url, response.status_code, response.text
            )

        logger.info(
            "webhook_forwarded",
            batch_id=batch_id,
            message_count=len(messages),
            unsent_batches=list(unsent_batches),
            format=self.message_format.value,
        )
