"""
LLM-powered keyword analysis for suggest-harvest.

Asks a Gemini model to label search intent, group keywords into clusters,
or propose new long-tail variations. Only the intent labels flow back into
records, as ``metadata["intent"]``.
"""

import json
import logging
from collections.abc import Iterable
from typing import Any

import httpx

from .config import LLMConfig
from .errors import ConfigurationError
from .models import KeywordRecord

logger = logging.getLogger(__name__)

ANALYSIS_MODES = ("intent", "cluster", "expand")

PROMPTS = {
    "cluster": (
        "Group the following SEO keywords into semantic clusters. Return a JSON "
        "object where keys are cluster names and values are arrays of keywords."
        "\n\nKeywords:\n{keywords}"
    ),
    "intent": (
        "Analyze the search intent (Informational, Transactional, Navigational, "
        "Commercial) for the following keywords. Return a JSON object where keys "
        "are keywords and values are intents.\n\nKeywords:\n{keywords}"
    ),
    "expand": (
        "Generate 10 new, high-value long-tail keyword variations based on this "
        "list, focused on Persian/Farsi markets if applicable. Return a JSON "
        "array of strings.\n\nList:\n{keywords}"
    ),
}


class KeywordAnalyzer:
    """Client for the Gemini ``generateContent`` endpoint."""

    def __init__(self, config: LLMConfig):
        self.config = config

    def _endpoint(self) -> str:
        base = self.config.base_url.rstrip("/")
        return f"{base}/v1beta/models/{self.config.model}:generateContent"

    def build_prompt(self, keywords: list[str], mode: str) -> str:
        """Render the prompt for ``mode`` over at most ``max_keywords`` keywords."""
        if mode not in PROMPTS:
            raise ValueError(f"Unknown analysis mode: {mode!r}")
        subset = keywords[: self.config.max_keywords]
        return PROMPTS[mode].format(keywords="\n".join(subset))

    @staticmethod
    def _response_text(data: Any) -> str | None:
        """Concatenate the text parts of the first candidate."""
        if not isinstance(data, dict):
            raise ValueError("Unexpected response shape")
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise ValueError("Unexpected response shape")
        content = candidates[0].get("content") or {}
        if not isinstance(content, dict):
            raise ValueError("Unexpected response shape")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise ValueError("Unexpected response shape")
        texts = [
            p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)
        ]
        return "".join(texts) or None

    async def analyze(self, keywords: list[str], mode: str) -> Any:
        """
        Run one analysis over a keyword list.

        Args:
            keywords: Keywords to analyze (only the first ``max_keywords`` are sent)
            mode: "intent", "cluster" or "expand"

        Returns:
            The decoded JSON answer (mapping for intent/cluster, list for
            expand), or None if the model returned nothing

        Raises:
            ConfigurationError: if no API key is configured
            httpx.HTTPError: on transport failure
            ValueError: on an unknown mode or unparseable answer
        """
        api_key = self.config.get_api_key()
        if not api_key:
            env_hint = f" (set {self.config.api_key_env})" if self.config.api_key_env else ""
            raise ConfigurationError(f"LLM API key not configured{env_hint}")

        prompt = self.build_prompt(keywords, mode)
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {"responseMimeType": "application/json"},
        }

        logger.info(
            f"Requesting {mode} analysis for "
            f"{min(len(keywords), self.config.max_keywords)} keyword(s)"
        )

        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            try:
                response = await client.post(
                    self._endpoint(),
                    params={"key": api_key},
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
            except Exception:
                logger.exception(f"Error requesting {mode} analysis")
                raise

        text = self._response_text(data)
        if not text:
            return None
        return json.loads(text)


def apply_intent_labels(
    records: Iterable[KeywordRecord],
    labels: dict[str, Any] | None,
) -> int:
    """
    Merge intent labels into record metadata.

    Only ``metadata`` is touched. Returns the number of records labeled.
    """
    if not labels:
        return 0
    labeled = 0
    for record in records:
        label = labels.get(record.keyword)
        if label:
            record.metadata["intent"] = label
            labeled += 1
    return labeled


async def label_intents(
    analyzer: KeywordAnalyzer,
    records: list[KeywordRecord],
) -> int:
    """Label the given records with search intent; returns the count labeled."""
    if not records:
        return 0
    result = await analyzer.analyze([r.keyword for r in records], "intent")
    if result is not None and not isinstance(result, dict):
        raise ValueError("Intent analysis did not return a mapping")
    return apply_intent_labels(records, result)
