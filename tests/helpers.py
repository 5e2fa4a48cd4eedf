"""HTTP mocking helpers for adapter tests."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx


def mock_response(
    text: str = "",
    status_code: int = 200,
    json_data: object | None = None,
    url: str = "https://example.com",
) -> httpx.Response:
    """httpx.Response with a request attached so raise_for_status works."""
    request = httpx.Request("GET", url)
    if json_data is not None:
        return httpx.Response(status_code=status_code, json=json_data, request=request)
    return httpx.Response(status_code=status_code, text=text, request=request)


def mock_async_client(get=None, post=None) -> tuple[MagicMock, AsyncMock]:
    """Stand-in for the httpx.AsyncClient class and the instance it yields."""
    instance = AsyncMock()
    if get is not None:
        instance.get.side_effect = get
    if post is not None:
        instance.post.side_effect = post
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=instance), instance
