from .email import send_email_message
from .telegram import send_telegram_message
from .types import DeliveryError, DeliveryResult
from .webhooks import post_webhook

__all__ = [
    "post_webhook",
    "send_email_message",
    "send_telegram_message",
    "DeliveryError",
    "DeliveryResult",
]
