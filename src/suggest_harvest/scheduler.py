"""
Batch scheduler for suggest-harvest.

Runs the query queue against the enabled providers in small concurrent
batches, pacing between batches and stopping cooperatively on cancellation.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence

from .aggregator import Aggregator
from .config import SchedulerConfig
from .models import KeywordRecord, QueueItem, RunStatus, Tag
from .providers import ProviderRegistry

logger = logging.getLogger(__name__)

BatchCallback = Callable[[list[KeywordRecord]], None]
ProgressCallback = Callable[[float], None]


class CancellationToken:
    """Shared cancellation flag for a run."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation.

        Returns True if the token was cancelled.
        """
        if timeout <= 0:
            return self.cancelled
        try:
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            pass
        return self.cancelled


def batched(queue: Sequence[QueueItem], size: int) -> list[list[QueueItem]]:
    """Split the queue into consecutive batches of ``size`` items."""
    return [list(queue[i : i + size]) for i in range(0, len(queue), size)]


class Scheduler:
    """
    Drives a queue through the provider registry.

    Batches run strictly in queue order. Inside a batch, items and
    providers run concurrently; the batch is ingested once all of them
    have settled.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        aggregator: Aggregator,
        config: SchedulerConfig | None = None,
    ):
        self.registry = registry
        self.aggregator = aggregator
        self.config = config or SchedulerConfig()

    async def _settle(
        self,
        item: QueueItem,
        providers: Sequence[str],
        locale: str,
        token: CancellationToken,
    ) -> dict[str, list[str]]:
        """Fan one item out to every provider and wait for all of them."""
        if token.cancelled:
            return {}

        outcomes = await asyncio.gather(
            *(
                self.registry.fetch(p, item.query, locale, item.cursor_position)
                for p in providers
            ),
            return_exceptions=True,
        )

        results: dict[str, list[str]] = {}
        for provider, outcome in zip(providers, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"Provider {provider} raised for {item.query!r}: {outcome}")
                results[provider] = []
            else:
                results[provider] = outcome
        return results

    def _ingest_batch(
        self,
        batch: list[QueueItem],
        settled: list[dict[str, list[str]]],
    ) -> list[KeywordRecord]:
        """Ingest one batch, one settle call at a time.

        Seed queries go last so a suggestion also reached by a strategy query
        in the same batch carries that strategy's tag.
        """
        pairs = list(zip(batch, settled))
        pairs.sort(key=lambda pair: pair[0].tag == Tag.SEED.value)
        accepted = []
        for item, results in pairs:
            accepted.extend(self.aggregator.ingest(item, results))
        return accepted

    async def run(
        self,
        queue: Sequence[QueueItem],
        providers: Sequence[str],
        locale: str,
        token: CancellationToken | None = None,
        on_batch_accepted: BatchCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RunStatus:
        """
        Process the whole queue.

        Args:
            queue: Items from the expander, in order
            providers: Provider ids to query for every item
            locale: Region passed to the providers
            token: Cancellation token checked before each batch and item
            on_batch_accepted: Called with the records accepted in each batch
            on_progress: Called with the percent complete after each batch

        Returns:
            RunStatus.CANCELLED or RunStatus.COMPLETED
        """
        token = token or CancellationToken()
        batches = batched(queue, self.config.batch_size)
        total = len(queue)
        completed = 0
        interrupted = False

        logger.info(
            f"Running {total} queries against {len(providers)} provider(s) "
            f"in {len(batches)} batch(es)"
        )

        for index, batch in enumerate(batches):
            if token.cancelled:
                interrupted = True
                break

            settled = await asyncio.gather(
                *(self._settle(item, providers, locale, token) for item in batch)
            )

            # Work already in flight finishes, but its output is dropped
            if token.cancelled:
                logger.debug(f"Discarding batch {index + 1} after cancellation")
                interrupted = True
                break

            accepted = self._ingest_batch(batch, settled)
            if accepted and on_batch_accepted is not None:
                on_batch_accepted(accepted)

            completed += len(batch)
            if on_progress is not None:
                on_progress(completed / total * 100)

            is_last = index == len(batches) - 1
            if not is_last and await token.wait(self.config.pacing_seconds):
                interrupted = True
                break

        # A stop that arrives after the last batch leaves the run complete
        if interrupted:
            logger.info(f"Run cancelled after {completed} of {total} queries")
            return RunStatus.CANCELLED

        logger.info(f"Run completed: {len(self.aggregator.store)} keywords")
        return RunStatus.COMPLETED
