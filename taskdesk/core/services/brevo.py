import asyncio
import random
from typing import Any

import httpx
from pydantic import BaseModel

from taskdesk.core.config import brevo_logger, settings
from taskdesk.core.exceptions.types import EmailDeliveryException


class Contact(BaseModel):
    email: str
    name: str | None = None


class ListContact(BaseModel):
    to: list[Contact]


class BrevoService:
    _base_url: str = settings.BREVO_BASE_URL
    _api_key: str = settings.BREVO_API_KEY
    _sender_email: str = settings.BREVO_SENDER_EMAIL
    _sender_name: str = settings.BREVO_SENDER_NAME
    _client: httpx.AsyncClient | None = None

    # Bounded retries + backoff
    _BACKOFF_BASE: float = 1.0
    _BACKOFF_MAX: float = 10.0
    _JITTER: float = 0.2  # +/-20%

    @classmethod
    def _init_client(cls) -> None:
        """Create the HTTP client once."""
        if cls._client is None:
            cls._client = httpx.AsyncClient(
                base_url=cls._base_url,
                timeout=httpx.Timeout(30.0),
            )
            brevo_logger.info("Brevo HTTP client initialized")

    @classmethod
    async def aclose(cls) -> None:
        """
        Close the Brevo HTTP client if it is initialized.

        The client reference is cleared even when closing raises.
        """
        if cls._client is not None:
            try:
                await cls._client.aclose()
            finally:
                cls._client = None
                brevo_logger.info("Brevo HTTP client closed")

    @classmethod
    async def init(
        cls,
        api_key: str | None = None,
        sender_email: str | None = None,
        sender_name: str | None = None,
    ) -> None:
        """
        Initializes the Brevo service with the provided configuration.

        Parameters left as None keep their current values. Any existing client
        is closed before a new one is created.

        Args:
            api_key (str | None): The API key for authenticating requests.
            sender_email (str | None): The email address of the sender.
            sender_name (str | None): The display name of the sender.
        """
        if api_key is not None:
            cls._api_key = api_key
        if sender_email is not None:
            cls._sender_email = sender_email
        if sender_name is not None:
            cls._sender_name = sender_name
        await cls.aclose()
        cls._init_client()

    @classmethod
    def _compute_backoff(
        cls, attempt: int, err_headers: httpx.Headers | None = None
    ) -> float:
        """
        Compute the delay in seconds before retry ``attempt`` (1-based).

        Brevo's ``x-sib-ratelimit-reset`` header wins when present and numeric.
        Otherwise the delay is exponential from ``_BACKOFF_BASE``, capped at
        ``_BACKOFF_MAX``, with multiplicative jitter of +/- ``_JITTER``.
        """
        if err_headers and "x-sib-ratelimit-reset" in err_headers:
            try:
                return float(err_headers.get("x-sib-ratelimit-reset"))
            except (TypeError, ValueError):
                pass
        base = min(cls._BACKOFF_BASE * (2 ** (attempt - 1)), cls._BACKOFF_MAX)
        jitter = random.uniform(1 - cls._JITTER, 1 + cls._JITTER)
        return base * jitter

    @classmethod
    def _auth_headers(cls) -> dict[str, str]:
        return {
            "api-key": cls._api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    @classmethod
    async def _request(
        cls,
        method: str,
        endpoint: str,
        *,
        json: dict[str, Any] | None = None,
        max_attempts: int = 3,
    ) -> dict[str, Any] | str:
        """
        Perform a request to the Brevo API with bounded retries.

        5xx responses, 429 responses and network errors are retried with
        backoff up to ``max_attempts`` in total. Other 4xx responses fail
        immediately.

        Args:
            method: HTTP method (e.g. "POST").
            endpoint: Path relative to the Brevo base URL.
            json: Optional JSON body.
            max_attempts: Total number of attempts. Defaults to 3.

        Returns:
            dict[str, Any] | str: Parsed JSON body, or the raw text when it is not JSON.

        Raises:
            EmailDeliveryException: When the request fails for good.
        """
        if cls._client is None:
            cls._init_client()
        assert cls._client is not None

        for attempt in range(1, max_attempts + 1):
            try:
                resp: httpx.Response = await cls._client.request(
                    method, endpoint, headers=cls._auth_headers(), json=json
                )
                resp.raise_for_status()
                try:
                    body = resp.json()
                except ValueError:
                    body = resp.text

                brevo_logger.info(f"Brevo response: {body}")
                return body

            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                try:
                    err_body = exc.response.json()
                except ValueError:
                    err_body = exc.response.text

                if status >= 500 or status == 429:
                    wait = cls._compute_backoff(attempt, exc.response.headers)
                    brevo_logger.warning(
                        f"{status} from Brevo; attempt {attempt}/{max_attempts}; wait={wait:.1f}s; body={err_body}"
                    )
                    if attempt < max_attempts:
                        await asyncio.sleep(wait)
                        continue
                    brevo_logger.error(f"Brevo error after retries: {status}: {err_body}")
                    raise EmailDeliveryException(
                        f"Brevo error after retries: {status}"
                    ) from exc

                brevo_logger.error(f"4xx error {status}: {err_body}")
                raise EmailDeliveryException(
                    f"Brevo rejected the request: {status}"
                ) from exc

            except (httpx.TimeoutException, httpx.TransportError) as exc:
                wait = cls._compute_backoff(attempt)
                brevo_logger.warning(
                    f"Timeout/transport error; attempt {attempt}/{max_attempts}; wait={wait:.1f}s; err={exc}"
                )
                if attempt < max_attempts:
                    await asyncio.sleep(wait)
                    continue
                brevo_logger.error(f"Network error after retries: {exc}")
                raise EmailDeliveryException("Brevo network error after retries") from exc

        raise EmailDeliveryException("No response from Brevo after all attempts")

    @classmethod
    async def send_transactional_email(
        cls,
        subject: str,
        to: ListContact,
        sender: Contact | None = None,
        textContent: str | None = None,
        htmlContent: str | None = None,
    ) -> dict[str, Any] | str:
        """
        Sends a transactional email via the Brevo API.

        Args:
            subject (str): Subject of the email.
            to (ListContact): Recipients.
            sender (Contact | None): Sender; defaults to the configured sender.
            textContent (str | None): Plain text body.
            htmlContent (str | None): HTML body.

        Returns:
            dict[str, Any] | str: The Brevo API response.

        Raises:
            ValueError: If neither body is provided.
            EmailDeliveryException: If Brevo does not accept the message.
        """
        if not htmlContent and not textContent:
            raise ValueError("Either htmlContent or textContent must be provided")
        sender = sender or Contact(email=cls._sender_email, name=cls._sender_name)
        payload: dict[str, Any] = {
            "sender": sender.model_dump(exclude_none=True),
            "subject": subject,
            **to.model_dump(exclude_none=True),
        }
        if textContent:
            payload["textContent"] = textContent
        if htmlContent:
            payload["htmlContent"] = htmlContent

        return await cls._request(method="POST", endpoint="/smtp/email", json=payload)


__all__ = ["BrevoService", "Contact", "ListContact"]
