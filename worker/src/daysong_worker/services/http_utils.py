"""Helpers shared by the provider adapters for talking HTTP."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from .exceptions import TransportError


@asynccontextmanager
async def client_session(
    client: Optional[httpx.AsyncClient],
    timeout: float,
) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one that is closed afterwards."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as owned:
        yield owned


def decode_json(response: httpx.Response, provider: str) -> Any:
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise TransportError(f"Invalid JSON response from {provider}: {response.text[:200]}") from exc


def error_body(response: httpx.Response) -> Any:
    """Best-effort JSON body of an error response, or its text."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


async def download_audio(
    url: str,
    *,
    client: Optional[httpx.AsyncClient],
    timeout: float,
) -> bytes:
    async with client_session(client, timeout) as session:
        try:
            response = await session.get(url)
        except httpx.HTTPError as exc:
            raise TransportError(f"Failed to download audio from {url}: {exc}") from exc
    if response.status_code >= 400:
        raise TransportError(f"Failed to download audio from {url}: HTTP {response.status_code}")
    if not response.content:
        raise TransportError(f"Downloaded audio from {url} is empty")
    return response.content
