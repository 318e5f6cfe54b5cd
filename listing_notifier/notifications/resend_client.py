"""Async client for the Resend email API.

Resend is the preferred provider. Its error responses are JSON bodies of
the form ``{"statusCode": 403, "name": "validation_error", "message": ...}``;
every failure is raised as ProviderRejection carrying a classification so
the delivery service can decide how to fall back and what to audit.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from .models import OutboundEmail, ProviderRejection, TransportConstructionError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.resend.com"


def classify_provider_error(
    status_code: Optional[int], message: str = "", name: str = ""
) -> str:
    """Map a Resend error to a short human-readable category.

    Args:
        status_code: HTTP status, or None when no response was received
        message: Provider error message
        name: Provider error name (e.g. ``validation_error``)

    Returns:
        One of: domain-unverified, sender-restricted, unauthorized,
        rate-limited, invalid-request, provider-unavailable, network-error,
        unknown
    """
    text = f"{name} {message}".lower()

    if status_code is None:
        return "network-error"
    if "domain" in text and ("verif" in text or "not found" in text):
        return "domain-unverified"
    if "testing emails" in text or "own email" in text:
        return "sender-restricted"
    if status_code in (401, 403):
        return "unauthorized"
    if status_code == 429:
        return "rate-limited"
    if status_code in (400, 404, 405, 409, 422):
        return "invalid-request"
    if status_code >= 500:
        return "provider-unavailable"
    return "unknown"


class ResendClient:
    """Thin async wrapper around ``POST /emails``.

    One instance is shared by every concurrent delivery; the underlying
    httpx.AsyncClient pools connections across them.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            api_key: Resend API key
            base_url: API base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass httpx.MockTransport)

        Raises:
            TransportConstructionError: If the key or URL is unusable
        """
        if not api_key or not api_key.strip():
            raise TransportConstructionError("Resend API key is empty")

        try:
            self._client = httpx.AsyncClient(
                base_url=base_url,
                timeout=timeout,
                headers={"Authorization": f"Bearer {api_key.strip()}"},
                transport=transport,
            )
        except (ValueError, TypeError, httpx.InvalidURL) as e:
            raise TransportConstructionError(f"Could not build Resend client: {e}") from e

    async def send(self, message: OutboundEmail) -> Optional[str]:
        """Send one email.

        Args:
            message: Rendered email

        Returns:
            Resend message id, if the response carried one

        Raises:
            ProviderRejection: On any non-2xx response or transport error
        """
        payload: Dict[str, Any] = {
            "from": message.from_address,
            "to": [message.to],
            "subject": message.subject,
            "text": message.text,
        }
        if message.html:
            payload["html"] = message.html

        try:
            response = await self._client.post("/emails", json=payload)
        except httpx.HTTPError as e:
            raise ProviderRejection(
                f"Resend request failed: {e}",
                status_code=None,
                category=classify_provider_error(None),
            ) from e

        if response.is_success:
            data = self._json(response)
            return data.get("id") if isinstance(data, dict) else None

        data = self._json(response)
        error_message = data.get("message") if isinstance(data, dict) else None
        error_name = data.get("name", "") if isinstance(data, dict) else ""
        error_message = error_message or response.text or response.reason_phrase

        raise ProviderRejection(
            f"Resend API responded with {response.status_code}: {error_message}",
            status_code=response.status_code,
            category=classify_provider_error(response.status_code, error_message, error_name),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None
