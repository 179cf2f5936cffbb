import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence

from moodlist.crosscutting.metrics import MetricsCollector
from moodlist.domain.entities import SearchQuery, Track
from moodlist.domain.errors import GenerationCancelled, NoCandidates, NotAuthenticated, SearchError
from moodlist.domain.ports import TrackCatalog


logger = logging.getLogger(__name__)


class CandidateAggregator:
    """Runs planned catalog queries concurrently and merges their results."""

    def __init__(self, catalog: TrackCatalog, max_workers: int = 4):
        """Initialize aggregator.

        Args:
            catalog: Track catalog port
            max_workers: Number of concurrent search threads
        """
        self.catalog = catalog
        self.max_workers = max_workers

    def aggregate(self,
                  queries: Sequence[SearchQuery],
                  metrics: Optional[MetricsCollector] = None,
                  cancel_event: Optional[threading.Event] = None) -> List[Track]:
        """Execute all queries and return unique tracks in plan order.

        Every query is awaited. A query raising SearchError is logged, counted and
        skipped; NotAuthenticated aborts the whole run.

        Args:
            queries: Planned queries
            metrics: Optional metrics collector
            cancel_event: Set by the caller to abandon the run

        Returns:
            Tracks deduplicated by id, first occurrence wins

        Raises:
            NoCandidates: if no query produced any track
            GenerationCancelled: if cancel_event was set before the merge
            NotAuthenticated: if the catalog rejected the token
        """
        self._check_cancelled(cancel_event)

        results: Dict[int, List[Track]] = {}
        failures = 0

        with ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(queries) or 1))) as pool:
            # Workers see the caller's correlation context
            futures = {
                pool.submit(contextvars.copy_context().run, self.catalog.search, query): index
                for index, query in enumerate(queries)
            }
            try:
                for future in as_completed(futures):
                    index = futures[future]
                    query = queries[index]
                    try:
                        results[index] = future.result()
                        logger.debug(f"Query '{query.describe()}' returned {len(results[index])} tracks")
                    except NotAuthenticated:
                        raise
                    except SearchError as e:
                        failures += 1
                        if metrics:
                            metrics.record_query_failure()
                        logger.warning(f"Search '{query.describe()}' failed, skipping: {e}")
            except NotAuthenticated:
                for pending in futures:
                    pending.cancel()
                raise

        self._check_cancelled(cancel_event)

        merged: List[Track] = []
        seen_ids = set()
        for index in range(len(queries)):
            for track in results.get(index, []):
                if track.id and track.id not in seen_ids:
                    seen_ids.add(track.id)
                    merged.append(track)

        logger.info(f"Aggregated {len(merged)} unique tracks from {len(queries)} queries ({failures} failed)")

        if not merged:
            raise NoCandidates("No tracks found. Try other genres or artists.")

        return merged

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise GenerationCancelled("Playlist generation was cancelled")
