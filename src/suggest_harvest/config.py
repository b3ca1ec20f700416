"""
Configuration for suggest-harvest.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

DEFAULT_LOCALE = "IR"
DEFAULT_PROVIDERS = ["google"]


@dataclass
class StrategiesConfig:
    """Enable/disable individual query generation strategies."""

    script_alphabet: bool = True  # Persian alphabet, one letter
    script_double: bool = False  # Persian alphabet, two letters (n² queries)
    generic_prefix: bool = False  # "a seed", "b seed", ...
    generic_suffix: bool = False  # "seed a", "seed b", ...
    questions: bool = False  # "how to seed", "best seed", ...
    deep: bool = False  # Accepted for compatibility; no follow-up phase runs
    middle_gap: bool = False  # Fill the gaps between words

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StrategiesConfig":
        """Create from a dictionary, ignoring unknown keys.

        Only real booleans are taken; any other value keeps the default.
        """
        defaults = cls().to_dict()
        return cls(
            **{
                name: data[name] if isinstance(data.get(name), bool) else default
                for name, default in defaults.items()
            }
        )

    def to_dict(self) -> dict[str, bool]:
        """Convert to dictionary."""
        return {
            "script_alphabet": self.script_alphabet,
            "script_double": self.script_double,
            "generic_prefix": self.generic_prefix,
            "generic_suffix": self.generic_suffix,
            "questions": self.questions,
            "deep": self.deep,
            "middle_gap": self.middle_gap,
        }


@dataclass
class SearchOptions:
    """User-facing search options, persisted between sessions."""

    seed: str = ""
    locale: str = DEFAULT_LOCALE  # Passed upstream as the region (gl) parameter
    providers: list[str] = field(default_factory=lambda: list(DEFAULT_PROVIDERS))
    strategies: StrategiesConfig = field(default_factory=StrategiesConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchOptions":
        """Create options from a dictionary (e.g., from the options store)."""
        if not isinstance(data, dict):
            raise TypeError(f"Expected a mapping, got {type(data).__name__}")

        options = cls()
        if "seed" in data:
            options.seed = str(data["seed"])
        if "locale" in data:
            options.locale = str(data["locale"])
        if "providers" in data:
            providers = data["providers"]
            if not isinstance(providers, list):
                raise TypeError("providers must be a list")
            options.providers = [str(p) for p in providers]
        if "strategies" in data:
            strategies = data["strategies"]
            if not isinstance(strategies, dict):
                raise TypeError("strategies must be a mapping")
            options.strategies = StrategiesConfig.from_dict(strategies)
        return options

    def to_dict(self) -> dict[str, Any]:
        """Convert options to dictionary for JSON serialization."""
        return {
            "seed": self.seed,
            "locale": self.locale,
            "providers": list(self.providers),
            "strategies": self.strategies.to_dict(),
        }


@dataclass
class SchedulerConfig:
    """Batching and pacing for provider requests."""

    batch_size: int = 3
    pacing_seconds: float = 0.2  # Delay between batches
    settle_seconds: float = 1.0  # Time before a finished run resets to idle


@dataclass
class TransportConfig:
    """Timeouts and endpoints for the fetch transports."""

    callback_timeout_seconds: float = 5.0
    relay_timeout_seconds: float = 15.0
    relay_base: str = "https://r.jina.ai/"


@dataclass
class LLMConfig:
    """LLM provider configuration for keyword analysis."""

    provider: str = "gemini"
    model: str = "gemini-2.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com"
    api_key: str | None = None
    api_key_env: str | None = "GEMINI_API_KEY"
    timeout_seconds: float = 60.0
    max_keywords: int = 100

    def get_api_key(self) -> str | None:
        """Get API key from config or environment."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env)
        return None


@dataclass
class HarvestConfig:
    """Complete suggest-harvest configuration."""

    db_path: Path = field(default_factory=lambda: Path("suggest_harvest.db"))

    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HarvestConfig":
        """Create config from a dictionary (e.g., from YAML)."""
        config = cls()

        if "db_path" in data:
            config.db_path = Path(data["db_path"])

        if "scheduler" in data:
            sched = data["scheduler"]
            config.scheduler = SchedulerConfig(
                batch_size=sched.get("batch_size", 3),
                pacing_seconds=sched.get("pacing_seconds", 0.2),
                settle_seconds=sched.get("settle_seconds", 1.0),
            )

        if "transport" in data:
            tr = data["transport"]
            config.transport = TransportConfig(
                callback_timeout_seconds=tr.get("callback_timeout_seconds", 5.0),
                relay_timeout_seconds=tr.get("relay_timeout_seconds", 15.0),
                relay_base=tr.get("relay_base", config.transport.relay_base),
            )

        if "llm" in data:
            llm = data["llm"]
            config.llm = LLMConfig(
                provider=llm.get("provider", "gemini"),
                model=llm.get("model", "gemini-2.5-flash"),
                base_url=llm.get("base_url", config.llm.base_url),
                api_key=llm.get("api_key"),
                api_key_env=llm.get("api_key_env", "GEMINI_API_KEY"),
                timeout_seconds=llm.get("timeout_seconds", 60.0),
                max_keywords=llm.get("max_keywords", 100),
            )

        if config.scheduler.batch_size < 1:
            raise ValueError("scheduler.batch_size must be at least 1")

        return config

    @classmethod
    def from_yaml(cls, path: Path) -> "HarvestConfig":
        """Load config from a YAML file; a missing file gives the defaults."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("harvest", data))

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for JSON serialization."""
        return {
            "db_path": str(self.db_path),
            "scheduler": {
                "batch_size": self.scheduler.batch_size,
                "pacing_seconds": self.scheduler.pacing_seconds,
                "settle_seconds": self.scheduler.settle_seconds,
            },
            "transport": {
                "callback_timeout_seconds": self.transport.callback_timeout_seconds,
                "relay_timeout_seconds": self.transport.relay_timeout_seconds,
                "relay_base": self.transport.relay_base,
            },
            "llm": {
                "provider": self.llm.provider,
                "model": self.llm.model,
                "base_url": self.llm.base_url,
            },
        }
