"""Resend mail provider adapter.

Plain HTTP POST to the Resend API via httpx. One attempt per message.
"""

import logging

import httpx

from app.core.config import settings
from app.providers.errors import (
    AuthenticationError,
    MailDeliveryError,
    RateLimitError,
    TransientError,
)
from app.providers.mail.base import MailProvider, VerificationEmail

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"


def _retry_after(resp: httpx.Response) -> float | None:
    value = resp.headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class ResendMailAdapter(MailProvider):
    """Resend implementation of MailProvider.

    Args:
        api_key: Resend API key. Defaults to settings.
        sender: From header. Defaults to settings.
        timeout: Request timeout in seconds. Defaults to settings.
        transport: Optional httpx transport, for tests.
    """

    def __init__(
        self,
        *,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = (
            api_key
            if api_key is not None
            else settings.resend_api_key.get_secret_value()
        )
        self._sender = sender or settings.email_from
        self._timeout = timeout if timeout is not None else settings.mail_timeout_seconds
        self._transport = transport

    @property
    def provider_name(self) -> str:
        """Return 'resend'."""
        return "resend"

    async def send(self, message: VerificationEmail) -> None:
        """POST the message to Resend.

        Raises:
            TransientError: On timeouts, connection failures, and 5xx.
            AuthenticationError: On 401/403.
            RateLimitError: On 429.
            MailDeliveryError: On any other non-2xx response.
        """
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._sender,
                        "to": message.to_email,
                        "subject": message.subject,
                        "text": message.text,
                    },
                    timeout=self._timeout,
                )
        except httpx.TimeoutException as exc:
            raise TransientError("Resend request timed out") from exc
        except httpx.HTTPError as exc:
            raise TransientError(f"Resend request failed: {type(exc).__name__}") from exc

        if resp.is_success:
            return

        status = resp.status_code
        logger.warning("Resend rejected message with status %d", status)
        if status in (401, 403):
            raise AuthenticationError(f"Resend rejected API key ({status})")
        if status == 429:
            raise RateLimitError(
                "Resend rate limit exceeded", retry_after_seconds=_retry_after(resp)
            )
        if status >= 500:
            raise TransientError(f"Resend server error ({status})")
        raise MailDeliveryError(f"Resend rejected message ({status})")
