from collections.abc import AsyncIterator, Callable, Hashable
from typing import Any

import aiohttp
from src.config.logger_config import logger

from src.grabber.application.ports import RemoteSourcePort
from src.grabber.domain.errors import RemoteContractError
from src.grabber.domain.models import CursorStats, api_list

EMPTY_BATCH_POSITION_EVERY = 10


def list_extractor(module: str) -> Callable[[dict[str, Any]], list[Any]]:
    """Pull ``query[module]`` out of a response; formatversion 1 maps become lists."""

    def extract(data: dict[str, Any]) -> list[Any]:
        return api_list((data.get("query") or {}).get(module))

    return extract


class ContinuationCursor:
    """Drive one API listing until the remote stops returning continuation.

    Iterating yields one list of items per remote query. Continuation values
    from ``continue`` (or the legacy ``query-continue[legacy_module]``) are
    merged into the request for the next query.

    When ``key`` is given, the ids of the immediately preceding batch are kept
    and items of the next batch carrying one of those ids are dropped; listings
    ordered by timestamp can repeat entries across a batch boundary.
    """

    def __init__(
        self,
        remote: RemoteSourcePort,
        session: aiohttp.ClientSession,
        params: dict[str, Any],
        *,
        extract: Callable[[dict[str, Any]], list[Any]],
        key: Callable[[Any], Hashable] | None = None,
        position: Callable[[Any], str | None] | None = None,
        legacy_module: str | None = None,
        fail_on_empty: bool = False,
        operation: str,
    ) -> None:
        self.remote = remote
        self.session = session
        self.params = dict(params)
        self.extract = extract
        self.key = key
        self.position = position
        self.legacy_module = legacy_module
        self.fail_on_empty = fail_on_empty
        self.operation = operation

        self.batches = 0
        self.items_seen = 0
        self.duplicates_skipped = 0
        self.empty_batches = 0
        self.last_position: str | None = None
        self._previous_keys: set[Hashable] = set()
        self._exhausted = False

    @property
    def stats(self) -> CursorStats:
        return CursorStats(
            batches=self.batches,
            items_seen=self.items_seen,
            duplicates_skipped=self.duplicates_skipped,
            empty_batches=self.empty_batches,
        )

    def __aiter__(self) -> AsyncIterator[list[Any]]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[list[Any]]:
        consecutive_empty = 0
        while not self._exhausted:
            data = await self.remote.query(self.session, self.params, operation=self.operation)
            continuation = self._continuation(data)
            items = self.extract(data)

            if not items:
                self.empty_batches += 1
                if continuation is None:
                    self._exhausted = True
                    if self.fail_on_empty and self.items_seen == 0:
                        raise RemoteContractError(f"No results found on remote wiki for {self.operation}")
                    break
                consecutive_empty += 1
                logger.info("No result in this query for {} due to miser mode.", self.operation)
                if self.last_position and consecutive_empty % EMPTY_BATCH_POSITION_EVERY == 0:
                    logger.info("Last position for {}: {}", self.operation, self.last_position)
                self.params.update(continuation)
                continue

            consecutive_empty = 0
            self.batches += 1
            fresh = self._drop_previous_batch_items(items)
            self.items_seen += len(fresh)
            if self.position is not None:
                self.last_position = self.position(items[-1]) or self.last_position

            if continuation is None:
                self._exhausted = True
            else:
                self.params.update(continuation)
            yield fresh

    def _drop_previous_batch_items(self, items: list[Any]) -> list[Any]:
        if self.key is None:
            return items
        fresh = [item for item in items if self.key(item) not in self._previous_keys]
        skipped = len(items) - len(fresh)
        if skipped:
            self.duplicates_skipped += skipped
            logger.debug("Skipped {} items already processed in the previous batch of {}", skipped, self.operation)
        # Computed from the full batch, not only from the fresh items
        self._previous_keys = {self.key(item) for item in items}
        return fresh

    def _continuation(self, data: dict[str, Any]) -> dict[str, Any] | None:
        if self.legacy_module:
            legacy = (data.get("query-continue") or {}).get(self.legacy_module)
            if legacy:
                return dict(legacy)
        current = data.get("continue")
        if current:
            return dict(current)
        return None
