"""HTTP client for the Telecare API with centralized auth handling."""

import asyncio
from typing import Any

import httpx
import structlog

from telecare.client.session import SessionContext
from telecare.core.exceptions import (
    AccountBlockedException,
    AppException,
    BadRequestException,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    NotFoundException,
    PaymentGatewayException,
    PaymentVerificationException,
    RateLimitException,
    ServiceUnavailableException,
    SessionExpiredException,
    SlotConflictException,
    UnauthorizedException,
    ValidationException,
)

logger = structlog.get_logger(__name__)

# Server error names that map onto a more specific client exception
ERROR_TYPES: dict[str, type[AppException]] = {
    cls.__name__: cls
    for cls in (
        SlotConflictException,
        InvalidTransitionException,
        PaymentVerificationException,
        PaymentGatewayException,
    )
}

STATUS_TYPES: dict[int, type[AppException]] = {
    400: BadRequestException,
    401: UnauthorizedException,
    403: ForbiddenException,
    404: NotFoundException,
    409: ConflictException,
    422: ValidationException,
    429: RateLimitException,
    502: PaymentGatewayException,
    503: ServiceUnavailableException,
}


def error_message(response: httpx.Response) -> str:
    """Extract the human message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("message") or body.get("detail")
        if isinstance(message, str):
            return message
    return response.reason_phrase


class ApiClient:
    """
    Sends requests with the session's bearer token.

    A 401 triggers one token refresh per request; concurrent callers wait
    on the same refresh. If the refresh fails, or a 403 says the account is
    blocked, the session is cleared and the caller gets
    ``SessionExpiredException`` or ``AccountBlockedException``.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionContext,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ):
        self.session = session
        self._client = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self._refresh_lock = asyncio.Lock()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        url: str,
        authenticated: bool,
        **kwargs: Any,
    ) -> tuple[httpx.Response, str | None]:
        token = self.session.access_token if authenticated else None
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.warning("api_request_failed", method=method, url=url, error=str(e))
            raise ServiceUnavailableException("Network error, please retry")
        return response, token

    async def _refresh(self, stale_token: str | None) -> bool:
        async with self._refresh_lock:
            # Another caller already refreshed while we waited
            if self.session.access_token and self.session.access_token != stale_token:
                return True
            if not self.session.refresh_token:
                return False

            response, _ = await self._send(
                "POST",
                "/auth/refresh",
                authenticated=False,
                json={"refresh_token": self.session.refresh_token},
            )
            if response.status_code != 200:
                logger.info("token_refresh_failed", status_code=response.status_code)
                self._check_blocked(response)
                return False

            tokens = response.json()
            self.session.update_tokens(tokens["access_token"], tokens["refresh_token"])
            logger.info("token_refreshed")
            return True

    def _check_blocked(self, response: httpx.Response) -> None:
        if response.status_code != 403:
            return
        message = error_message(response)
        if "blocked" in message.lower():
            self.session.clear()
            logger.warning("session_cleared_account_blocked")
            raise AccountBlockedException(message)

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        self._check_blocked(response)
        message = error_message(response)
        try:
            error_name = response.json().get("error")
        except (ValueError, AttributeError):
            error_name = None
        exc_type = ERROR_TYPES.get(error_name) or STATUS_TYPES.get(response.status_code)
        if exc_type is None:
            raise AppException(message, status_code=response.status_code)
        raise exc_type(message)

    async def request(
        self,
        method: str,
        url: str,
        *,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            SessionExpiredException: If the token cannot be refreshed
            AccountBlockedException: If the account has been blocked
            ServiceUnavailableException: On network failure
            AppException: The subclass matching the error response
        """
        response, token = await self._send(method, url, authenticated, **kwargs)

        if response.status_code == 401 and authenticated:
            if not await self._refresh(token):
                self.session.clear()
                raise SessionExpiredException()
            response, _ = await self._send(method, url, authenticated, **kwargs)
            if response.status_code == 401:
                self.session.clear()
                raise SessionExpiredException()

        self._raise_for_status(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def get(self, url: str, **kwargs: Any) -> Any:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> Any:
        return await self.request("POST", url, **kwargs)

    async def login(self, id_token: str) -> dict[str, Any]:
        """Exchange a Firebase ID token for a session."""
        login = await self.request(
            "POST", "/auth/firebase/verify", authenticated=False, json={"id_token": id_token}
        )
        self.session.start(login)
        return login

    async def logout(self) -> None:
        """Revoke the refresh token and clear the session."""
        refresh_token = self.session.refresh_token
        self.session.clear()
        if refresh_token:
            await self.request(
                "POST", "/auth/logout", authenticated=False, json={"refresh_token": refresh_token}
            )
