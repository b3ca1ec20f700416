"""
Deduplication, tagging and result storage for suggest-harvest.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping

from .expander import strip_placeholder
from .models import (
    MIN_KEYWORD_LENGTH,
    KeywordRecord,
    QueueItem,
    Tag,
    keyword_id,
    normalize_keyword,
)

logger = logging.getLogger(__name__)


class ResultStore:
    """Append-only, insertion-ordered collection of accepted records."""

    def __init__(self) -> None:
        self._records: list[KeywordRecord] = []
        self._ids: set[str] = set()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[KeywordRecord]:
        return iter(list(self._records))

    def extend(self, records: Iterable[KeywordRecord]) -> None:
        """Append a batch of records; an id already present is a bug."""
        batch = list(records)
        incoming: set[str] = set()
        for record in batch:
            if record.id in self._ids or record.id in incoming:
                raise ValueError(f"Duplicate keyword id in result store: {record.keyword!r}")
            incoming.add(record.id)
        for record in batch:
            self._records.append(record)
            self._ids.add(record.id)

    def records(self) -> list[KeywordRecord]:
        return list(self._records)


class Aggregator:
    """
    Turns raw provider output into accepted records.

    One instance per run: it owns the seen-id set and the result store, and
    is only touched from the event loop driving the scheduler.
    """

    def __init__(self, seed: str, store: ResultStore | None = None):
        self.seed_keyword = normalize_keyword(strip_placeholder(seed))
        self.store = store if store is not None else ResultStore()
        self.seen: set[str] = set()

    def ingest(
        self,
        item: QueueItem,
        results: Mapping[str, list[str]],
    ) -> list[KeywordRecord]:
        """
        Accept the new suggestions from one settle call.

        A settle call is one queue item fanned out to every provider.
        ``results`` maps provider id to its raw suggestions. A keyword's
        ``sources`` are the providers in this call that returned it;
        providers that return it in later calls are not added.

        Returns:
            The newly accepted records, already appended to the store
        """
        pending: dict[str, str] = {}  # id -> keyword, in first-seen order
        sources: dict[str, list[str]] = {}

        for provider, suggestions in results.items():
            for raw in suggestions:
                keyword = normalize_keyword(raw)
                if len(keyword) < MIN_KEYWORD_LENGTH:
                    continue
                kid = keyword_id(keyword)
                if kid in self.seen:
                    continue
                if kid not in pending:
                    pending[kid] = keyword
                    sources[kid] = []
                if provider not in sources[kid]:
                    sources[kid].append(provider)

        accepted = []
        for kid, keyword in pending.items():
            self.seen.add(kid)
            tag = Tag.SEED.value if keyword == self.seed_keyword else item.tag
            accepted.append(
                KeywordRecord(
                    id=kid,
                    keyword=keyword,
                    sources=tuple(sources[kid]),
                    parent_query=item.query,
                    tag=tag,
                )
            )

        if accepted:
            self.store.extend(accepted)
            logger.debug(f"Accepted {len(accepted)} keyword(s) from {item.query!r}")

        return accepted
