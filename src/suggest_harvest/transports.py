"""
Fetch transports for autocomplete providers.

Two interchangeable primitives, both returning decoded JSON or an empty
list and never raising:

- CallbackTransport: completion endpoints that wrap their JSON in a
  caller-named callback (``?callback=name`` → ``name([...])``).
- RelayTransport: endpoints fetched through a text-extraction relay, with
  the JSON dug out of the relay's mixed text response.
"""

import asyncio
import json
import logging
import re
import secrets
from abc import ABC, abstractmethod
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Relay decorations around the upstream body
RELAY_HEADER_PATTERNS = [
    re.compile(r"^Title:.*$", re.MULTILINE),
    re.compile(r"^URL Source:.*$", re.MULTILINE),
]
CODE_FENCE_PATTERN = re.compile(r"```(?:json)?")
JSON_BLOCK_PATTERN = re.compile(r"(\[.*\]|\{.*\})", re.DOTALL)


class Transport(ABC):
    """Base class for fetch transports."""

    name: str = "base"

    @abstractmethod
    async def fetch_json(self, url: str) -> Any:
        """Fetch ``url`` and return its decoded JSON payload, or ``[]``."""


class CallbackTransport(Transport):
    """
    Callback-completion transport.

    Every request gets a fresh one-shot callback name that is tracked in
    ``pending`` until the request settles. A hard ceiling bounds each call;
    on timeout or any failure the result is ``[]`` and the callback name is
    released.
    """

    name = "callback"

    def __init__(self, timeout_seconds: float = 5.0):
        """
        Initialize the transport.

        Args:
            timeout_seconds: Ceiling for a whole request, connect to decode
        """
        self.timeout = timeout_seconds
        self.pending: set[str] = set()

    def _new_callback_name(self) -> str:
        while True:
            name = "j" + secrets.token_hex(6)
            if name not in self.pending:
                return name

    @staticmethod
    def build_url(url: str, callback_name: str) -> str:
        """Append the callback parameter, respecting an existing query string."""
        joiner = "&" if "?" in url else "?"
        return f"{url}{joiner}callback={callback_name}"

    @staticmethod
    def unwrap(text: str, callback_name: str) -> Any:
        """
        Decode a callback-wrapped body.

        Accepts ``name(<json>)`` with optional trailing ``;`` and, for
        upstreams that ignore the callback parameter, a plain JSON body.
        """
        body = text.strip()
        prefix = f"{callback_name}("
        start = body.find(prefix)
        if start != -1:
            end = body.rfind(")")
            if end <= start:
                raise ValueError("Unterminated callback response")
            body = body[start + len(prefix) : end]
        return json.loads(body)

    async def _request(self, url: str, callback_name: str) -> Any:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                self.build_url(url, callback_name), follow_redirects=True
            )
            response.raise_for_status()
            return self.unwrap(response.text, callback_name)

    async def fetch_json(self, url: str) -> Any:
        callback_name = self._new_callback_name()
        self.pending.add(callback_name)
        try:
            return await asyncio.wait_for(
                self._request(url, callback_name), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            logger.warning(f"Callback request timed out after {self.timeout}s: {url}")
            return []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Callback request failed for {url}: {e}")
            return []
        finally:
            self.pending.discard(callback_name)


class RelayTransport(Transport):
    """
    Relay transport.

    Fetches ``relay_base + url`` and extracts the first bracket-delimited
    JSON block from the relay's text. The scan is greedy, so it spans from
    the first opening bracket to the last closing one.
    """

    name = "relay"

    def __init__(
        self,
        relay_base: str = "https://r.jina.ai/",
        timeout_seconds: float = 15.0,
    ):
        self.relay_base = relay_base
        self.timeout = timeout_seconds

    @staticmethod
    def extract_json(text: str) -> Any:
        """Best-effort JSON extraction from relay output; ``[]`` on failure."""
        cleaned = text
        for pattern in RELAY_HEADER_PATTERNS:
            cleaned = pattern.sub("", cleaned)
        cleaned = CODE_FENCE_PATTERN.sub("", cleaned).strip()

        match = JSON_BLOCK_PATTERN.search(cleaned)
        if not match:
            return []
        try:
            return json.loads(match.group(0))
        except ValueError:
            logger.debug("Relay response held no parseable JSON")
            return []

    async def fetch_json(self, url: str) -> Any:
        relay_url = f"{self.relay_base}{url}"
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(
                    relay_url,
                    headers={"Cache-Control": "no-store"},
                    follow_redirects=True,
                )
                return self.extract_json(response.text)
            except httpx.HTTPError as e:
                logger.warning(f"Relay request failed for {url}: {e}")
                return []
