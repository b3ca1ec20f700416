"""
Run lifecycle for suggest-harvest.

The Harvester owns the search options, the observable run state and the
records of the latest run. Each run gets a fresh aggregator and result
store.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Any

from .aggregator import Aggregator, ResultStore
from .config import HarvestConfig, SearchOptions, StrategiesConfig
from .errors import HarvestError, SeedValidationError
from .expander import expand
from .models import KeywordRecord, OptionsStore, QueueItem, RunState, RunStatus
from .providers import ProviderRegistry, provider_key
from .scheduler import BatchCallback, CancellationToken, Scheduler

logger = logging.getLogger(__name__)


class Harvester:
    """
    Coordinates expansion, scheduling and aggregation for one user.

    State machine: IDLE → RUNNING → (CANCELLED | COMPLETED) → IDLE, the last
    step after ``settle_seconds``, which also resets progress to 0.
    """

    def __init__(
        self,
        config: HarvestConfig,
        options_store: OptionsStore | None = None,
        registry: ProviderRegistry | None = None,
    ):
        """
        Initialize the harvester.

        Args:
            config: Harvest configuration
            options_store: Where search options are loaded from and saved to
            registry: Optional ProviderRegistry (for testing)
        """
        self.config = config
        self.options_store = options_store
        self.registry = registry or ProviderRegistry(config.transport)
        self.options = options_store.load() if options_store else SearchOptions()
        self.state = RunState()
        self.store = ResultStore()
        self._token: CancellationToken | None = None
        self._settle_handle: asyncio.TimerHandle | None = None

    @property
    def records(self) -> list[KeywordRecord]:
        return self.store.records()

    @property
    def progress(self) -> float:
        return self.state.progress

    def update_options(self, **changes: Any) -> SearchOptions:
        """
        Change search options and persist them.

        Strategy flags may be passed by name (``middle_gap=True``) or as a
        ``strategies`` mapping/StrategiesConfig.
        """
        strategy_fields = set(StrategiesConfig().to_dict())
        strategy_changes = {k: changes.pop(k) for k in list(changes) if k in strategy_fields}

        strategies = changes.pop("strategies", self.options.strategies)
        if isinstance(strategies, dict):
            strategies = StrategiesConfig.from_dict(
                {**self.options.strategies.to_dict(), **strategies}
            )
        if strategy_changes:
            strategies = replace(strategies, **strategy_changes)

        unknown = set(changes) - {"seed", "locale", "providers"}
        if unknown:
            raise TypeError(f"Unknown option(s): {', '.join(sorted(unknown))}")

        if "providers" in changes:
            changes["providers"] = [provider_key(p) for p in changes["providers"]]

        self.options = replace(self.options, strategies=strategies, **changes)
        if self.options_store is not None:
            self.options_store.save(self.options)
        return self.options

    def build_queue(self) -> list[QueueItem]:
        """Expand the current options into a query queue."""
        return expand(self.options.seed, self.options.strategies)

    def _set_progress(self, percent: float) -> None:
        self.state.progress = max(0.0, min(100.0, percent))

    def _reset_to_idle(self) -> None:
        self._settle_handle = None
        if self.state.status in (RunStatus.CANCELLED, RunStatus.COMPLETED):
            self.state = RunState()

    async def start(self, on_batch_accepted: BatchCallback | None = None) -> RunStatus:
        """
        Run a harvest with the current options.

        Returns:
            The terminal status, CANCELLED or COMPLETED

        Raises:
            SeedValidationError: if the seed is empty after trimming
            HarvestError: if a run is already in progress
        """
        if not self.options.seed.strip():
            raise SeedValidationError("Seed must not be empty")
        if self.state.is_running:
            raise HarvestError("A run is already in progress")

        if self._settle_handle is not None:
            self._settle_handle.cancel()
            self._settle_handle = None

        queue = self.build_queue()
        providers = list(self.options.providers)
        if self.options.strategies.deep:
            logger.info("Deep follow-up is not implemented; the flag has no effect")

        self.store = ResultStore()
        aggregator = Aggregator(self.options.seed, self.store)
        scheduler = Scheduler(self.registry, aggregator, self.config.scheduler)
        self._token = CancellationToken()
        self.state = RunState(status=RunStatus.RUNNING, progress=0.0)

        logger.info(
            f"Starting harvest for {self.options.seed!r}: {len(queue)} queries, "
            f"providers={','.join(providers)}, locale={self.options.locale}"
        )

        try:
            status = await scheduler.run(
                queue,
                providers,
                self.options.locale,
                token=self._token,
                on_batch_accepted=on_batch_accepted,
                on_progress=self._set_progress,
            )
        except BaseException:
            self.state = RunState()
            raise
        finally:
            self._token = None

        self.state.status = status
        if status == RunStatus.COMPLETED:
            self.state.progress = 100.0

        loop = asyncio.get_running_loop()
        self._settle_handle = loop.call_later(
            self.config.scheduler.settle_seconds, self._reset_to_idle
        )
        return status

    def stop(self) -> None:
        """Request cancellation of the running harvest."""
        if self._token is not None:
            logger.info("Cancellation requested")
            self._token.cancel()
