# Copyright 2026 Seth Bang
# SPDX-License-Identifier: Apache-2.0
"""
httpx-based transport for an OpenAI-compatible chat-completion API.

Every method performs exactly one HTTP call. Failures are raised as
classified ProviderError subclasses; retrying is the RetryExecutor's job.
"""

import logging
from datetime import date
from typing import Any

import httpx

from .classification import classify_error, classify_response
from .config import ProviderSettings
from .exceptions import InvalidCredentialsError, UnknownProviderError

logger = logging.getLogger(__name__)

CHAT_COMPLETIONS_PATH = "/chat/completions"
USAGE_PATH = "/dashboard/billing/usage"
SUBSCRIPTION_PATH = "/dashboard/billing/subscription"


class CompletionClient:
    """
    Thin async client for the completion, usage and subscription endpoints.

    Example:
        >>> client = CompletionClient(ProviderSettings.from_env())
        >>> body = await client.create_chat_completion(
        ...     {"model": "gpt-3.5-turbo", "messages": [...]}
        ... )
        >>> await client.aclose()
    """

    def __init__(
        self,
        settings: ProviderSettings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            settings: Provider connection settings
            http_client: Optional pre-built httpx client (e.g. with a mock
                transport). When omitted the client owns one and closes it
                in ``aclose``.
        """
        self.settings = settings
        self._owns_http_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    @property
    def base_url(self) -> str:
        return self.settings.base_url

    def get_headers(self) -> dict[str, str]:
        """Authorization and content headers for every call."""
        if not self.settings.api_key:
            raise InvalidCredentialsError("Provider API key is not configured")
        headers = {
            "Authorization": f"Bearer {self.settings.api_key}",
            "Content-Type": "application/json",
        }
        if self.settings.organization:
            headers["OpenAI-Organization"] = self.settings.organization
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float,
        **kwargs: Any,
    ) -> dict[str, Any]:
        url = f"{self.settings.base_url}{path}"
        logger.debug(f"{method} {path} (timeout={timeout}s)")
        try:
            response = await self._http.request(
                method, url, headers=self.get_headers(), timeout=timeout, **kwargs
            )
        except httpx.HTTPError as e:
            raise classify_error(e) from e

        if response.is_error:
            raise classify_response(response)

        try:
            body = response.json()
        except ValueError as e:
            raise UnknownProviderError(
                f"Provider returned a non-JSON body for {path}",
                status_code=response.status_code,
                detail=response.text[:200],
            ) from e
        if not isinstance(body, dict):
            raise UnknownProviderError(
                f"Provider returned an unexpected body for {path}",
                status_code=response.status_code,
            )
        return body

    async def create_chat_completion(self, request_data: dict[str, Any]) -> dict[str, Any]:
        """
        POST one chat completion.

        Args:
            request_data: ``{model, messages, max_tokens, temperature}``

        Returns:
            The provider's JSON body (``choices[0].message.content`` holds
            the assistant message)
        """
        return await self._request(
            "POST",
            CHAT_COMPLETIONS_PATH,
            timeout=self.settings.request_timeout,
            json=request_data,
        )

    async def get_usage(self, start_date: date, end_date: date) -> dict[str, Any]:
        """GET billing usage between two dates (end exclusive)."""
        return await self._request(
            "GET",
            USAGE_PATH,
            timeout=self.settings.quota_timeout,
            params={
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )

    async def get_subscription(self) -> dict[str, Any]:
        """GET billing subscription and limits."""
        return await self._request(
            "GET",
            SUBSCRIPTION_PATH,
            timeout=self.settings.quota_timeout,
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http.aclose()


__all__ = ["CompletionClient"]
