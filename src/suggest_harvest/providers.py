"""
Autocomplete provider registry for suggest-harvest.

Each provider knows how to build its suggestion URL, which transport to
use, and how to decode its response envelope into plain strings.
"""

import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any
from urllib.parse import quote, urlencode

from .config import TransportConfig
from .transports import CallbackTransport, RelayTransport, Transport

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"<[^>]+>")

CSE_1_ID = "006368593537057042503:efxu7xprihg"
CSE_2_ID = "f65f6a13598034679"

FetchFunction = Callable[[str, str, int | None], Awaitable[list[Any]]]


class ProviderId(str, Enum):
    """Known autocomplete upstreams."""

    GOOGLE = "google"
    YOUTUBE = "youtube"
    AMAZON = "amazon"
    BING = "bing"
    DUCKDUCKGO = "duckduckgo"
    YAHOO = "yahoo"
    GOOGLE_CSE_1 = "google_cse_1"
    GOOGLE_CSE_2 = "google_cse_2"


def provider_key(provider_id: Any) -> str:
    """Plain string id for a provider given as a string or ProviderId."""
    if isinstance(provider_id, Enum):
        return str(provider_id.value)
    return str(provider_id)


def clean_suggestion(value: Any) -> str:
    """Strip markup from a suggestion; non-strings become ``""``."""
    if not isinstance(value, str):
        return ""
    return TAG_PATTERN.sub("", value)


# Response envelope decoders


def decode_second_element(data: Any) -> list[Any]:
    """``["q", ["s1", "s2"], ...]`` → ``["s1", "s2"]``."""
    if isinstance(data, list) and len(data) > 1 and isinstance(data[1], list):
        return data[1]
    return []


def decode_nested_arrays(data: Any) -> list[Any]:
    """``["q", [["s1", 0], ["s2", 0]], ...]`` → ``["s1", "s2"]``."""
    results = []
    for entry in decode_second_element(data):
        if isinstance(entry, list) and entry:
            results.append(entry[0])
    return results


def decode_phrase_objects(data: Any) -> list[Any]:
    """``[{"phrase": "s1"}, "s2"]`` → ``["s1", "s2"]``."""
    if not isinstance(data, list):
        return []
    return [x.get("phrase") if isinstance(x, dict) else x for x in data]


def decode_gossip_results(data: Any) -> list[Any]:
    """``{"gossip": {"results": [{"key": "s1"}]}}`` → ``["s1"]``."""
    if not isinstance(data, dict):
        return []
    gossip = data.get("gossip")
    if not isinstance(gossip, dict):
        return []
    results = gossip.get("results")
    if not isinstance(results, list):
        return []
    return [r.get("key") for r in results if isinstance(r, dict)]


# URL builders


def google_url(query: str, locale: str, cursor_position: int | None) -> str:
    params: dict[str, Any] = {"client": "chrome", "q": query, "gl": locale}
    if cursor_position is not None:
        params["cp"] = cursor_position
    return f"https://www.google.com/complete/search?{urlencode(params)}"


def youtube_url(query: str, locale: str, cursor_position: int | None) -> str:
    params = {"client": "youtube", "ds": "yt", "q": query, "gl": locale}
    return f"https://suggestqueries.google.com/complete/search?{urlencode(params)}"


def amazon_url(query: str, locale: str, cursor_position: int | None) -> str:
    params = {"method": "completion", "mkt": 1, "q": query, "search-alias": "aps"}
    return f"https://completion.amazon.com/search/complete?{urlencode(params)}"


def bing_url(query: str, locale: str, cursor_position: int | None) -> str:
    return f"https://api.bing.com/osjson.aspx?query={quote(query)}"


def duckduckgo_url(query: str, locale: str, cursor_position: int | None) -> str:
    return f"https://duckduckgo.com/ac/?q={quote(query)}&type=list"


def yahoo_url(query: str, locale: str, cursor_position: int | None) -> str:
    return (
        "https://search.yahoo.com/sugg/gossip/gossip-us-ura"
        f"?command={quote(query)}&output=json"
    )


def _cse_url(cse_id: str) -> Callable[[str, str, int | None], str]:
    def build(query: str, locale: str, cursor_position: int | None) -> str:
        params = {"client": "partner-generic", "ds": "cse", "cx": cse_id, "q": query}
        return f"https://clients1.google.com/complete/search?{urlencode(params)}"

    return build


@dataclass(frozen=True)
class ProviderSpec:
    """How to query one upstream and decode its answer."""

    provider_id: str
    build_url: Callable[[str, str, int | None], str]
    transport: str  # "callback" or "relay"
    decode: Callable[[Any], list[Any]]


DEFAULT_PROVIDERS: list[ProviderSpec] = [
    ProviderSpec(ProviderId.GOOGLE.value, google_url, "callback", decode_second_element),
    ProviderSpec(ProviderId.YOUTUBE.value, youtube_url, "callback", decode_nested_arrays),
    ProviderSpec(ProviderId.AMAZON.value, amazon_url, "callback", decode_second_element),
    ProviderSpec(ProviderId.BING.value, bing_url, "relay", decode_second_element),
    ProviderSpec(ProviderId.DUCKDUCKGO.value, duckduckgo_url, "relay", decode_phrase_objects),
    ProviderSpec(ProviderId.YAHOO.value, yahoo_url, "relay", decode_gossip_results),
    ProviderSpec(
        ProviderId.GOOGLE_CSE_1.value, _cse_url(CSE_1_ID), "callback", decode_second_element
    ),
    ProviderSpec(
        ProviderId.GOOGLE_CSE_2.value, _cse_url(CSE_2_ID), "callback", decode_second_element
    ),
]


class ProviderRegistry:
    """
    Dispatches suggestion requests to providers.

    ``fetch`` never raises: any transport or decode failure is logged and
    turns into an empty list. Results are cleaned of markup and empty
    strings but not deduplicated.
    """

    def __init__(
        self,
        transport_config: TransportConfig | None = None,
        transports: dict[str, Transport] | None = None,
        specs: list[ProviderSpec] | None = None,
    ):
        """
        Initialize the registry.

        Args:
            transport_config: Timeouts and relay endpoint for the default transports
            transports: Optional transports by kind (for testing)
            specs: Provider definitions; defaults to every known upstream
        """
        tc = transport_config or TransportConfig()
        self.transports: dict[str, Transport] = transports or {
            "callback": CallbackTransport(timeout_seconds=tc.callback_timeout_seconds),
            "relay": RelayTransport(
                relay_base=tc.relay_base, timeout_seconds=tc.relay_timeout_seconds
            ),
        }
        self._fetchers: dict[str, FetchFunction] = {}
        for spec in specs if specs is not None else DEFAULT_PROVIDERS:
            self.register_spec(spec)

    @property
    def provider_ids(self) -> list[str]:
        return list(self._fetchers)

    def register(self, provider_id: str, fetcher: FetchFunction) -> None:
        """Register (or replace) a fetch function for a provider.

        The function receives ``(query, locale, cursor_position)`` and returns
        raw suggestions; cleaning is applied by the registry.
        """
        self._fetchers[provider_key(provider_id)] = fetcher

    def register_spec(self, spec: ProviderSpec) -> None:
        """Register a provider built from a URL builder, transport and decoder."""
        if spec.transport not in self.transports:
            raise ValueError(f"Unknown transport {spec.transport!r} for {spec.provider_id}")

        async def fetch(query: str, locale: str, cursor_position: int | None) -> list[Any]:
            transport = self.transports[spec.transport]
            data = await transport.fetch_json(spec.build_url(query, locale, cursor_position))
            return spec.decode(data)

        self.register(spec.provider_id, fetch)

    async def fetch(
        self,
        provider_id: str,
        query: str,
        locale: str,
        cursor_position: int | None = None,
    ) -> list[str]:
        """
        Fetch suggestions for ``query`` from one provider.

        Args:
            provider_id: Registered provider id
            query: Query text
            locale: Region passed to upstreams that accept one
            cursor_position: Cursor offset for cursor-aware upstreams

        Returns:
            Cleaned, non-empty suggestion strings (possibly empty)
        """
        fetcher = self._fetchers.get(provider_key(provider_id))
        if fetcher is None:
            logger.warning(f"Unknown provider: {provider_id}")
            return []

        logger.debug(f"Fetching {provider_id} suggestions for {query!r}")

        try:
            raw = await fetcher(query, locale, cursor_position)
        except Exception as e:
            logger.warning(f"Provider {provider_id} failed for {query!r}: {e}")
            return []

        if not isinstance(raw, list):
            return []
        cleaned = (clean_suggestion(s) for s in raw)
        return [s for s in cleaned if s]
