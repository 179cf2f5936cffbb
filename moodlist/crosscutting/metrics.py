import json
import time
from datetime import datetime
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, asdict, field
from contextlib import contextmanager
import threading


@dataclass
class GenerationMetrics:
    """Counters and timings for a single playlist generation."""
    request_id: str
    mood: str
    queries_planned: int = 0
    queries_failed: int = 0
    candidates_found: int = 0
    candidates_filtered: int = 0
    candidates_scored: int = 0
    tracks_selected: int = 0
    unsatisfiable_artists: List[str] = field(default_factory=list)
    stage_durations_ms: Dict[str, int] = field(default_factory=dict)
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    total_duration_ms: int = 0

    @property
    def query_failure_rate(self) -> float:
        """Share of planned queries that failed."""
        if self.queries_planned == 0:
            return 0.0
        return self.queries_failed / self.queries_planned

    @property
    def selection_rate(self) -> float:
        """Share of unique candidates that made it into the playlist."""
        if self.candidates_found == 0:
            return 0.0
        return self.tracks_selected / self.candidates_found


class MetricsCollector:
    """Collects metrics for the generation pipeline. Safe to use from search worker threads."""

    def __init__(self, request_id: str, mood: str = ''):
        """Initialize metrics collector."""
        self.metrics = GenerationMetrics(request_id=request_id, mood=mood)
        self._lock = threading.Lock()

    def start(self) -> None:
        """Mark generation start."""
        with self._lock:
            self.metrics.start_time = datetime.now()

    def finish(self) -> None:
        """Mark generation end."""
        with self._lock:
            self.metrics.end_time = datetime.now()
            self.metrics.total_duration_ms = int(
                (self.metrics.end_time - self.metrics.start_time).total_seconds() * 1000
            )

    def set_mood(self, mood: str) -> None:
        with self._lock:
            self.metrics.mood = mood

    def record_queries_planned(self, count: int) -> None:
        with self._lock:
            self.metrics.queries_planned += count

    def record_query_failure(self) -> None:
        with self._lock:
            self.metrics.queries_failed += 1

    def record_candidates(self, found: Optional[int] = None, filtered: Optional[int] = None,
                          scored: Optional[int] = None) -> None:
        """Record candidate pool sizes after each narrowing stage."""
        with self._lock:
            if found is not None:
                self.metrics.candidates_found = found
            if filtered is not None:
                self.metrics.candidates_filtered = filtered
            if scored is not None:
                self.metrics.candidates_scored = scored

    def record_selected(self, count: int) -> None:
        with self._lock:
            self.metrics.tracks_selected = count

    def record_unsatisfiable(self, artists: List[str]) -> None:
        with self._lock:
            for artist in artists:
                if artist not in self.metrics.unsatisfiable_artists:
                    self.metrics.unsatisfiable_artists.append(artist)

    @contextmanager
    def stage(self, name: str):
        """Time a pipeline stage. Durations of repeated stages accumulate."""
        started = time.perf_counter()
        try:
            yield self
        finally:
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            with self._lock:
                self.metrics.stage_durations_ms[name] = self.metrics.stage_durations_ms.get(name, 0) + elapsed_ms

    def get_metrics(self) -> GenerationMetrics:
        """Get current metrics."""
        with self._lock:
            return self.metrics

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for JSON serialization."""
        with self._lock:
            data = asdict(self.metrics)
            data['start_time'] = self.metrics.start_time.isoformat()
            data['end_time'] = self.metrics.end_time.isoformat() if self.metrics.end_time else None
            data['query_failure_rate'] = self.metrics.query_failure_rate
            data['selection_rate'] = self.metrics.selection_rate
            return data

    def save_to_file(self, file_path: str) -> None:
        """Save metrics to JSON file."""
        with open(file_path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    def print_summary(self) -> None:
        """Print metrics summary to stdout."""
        metrics = self.get_metrics()

        print(f"\n=== Generation Metrics ({metrics.request_id}) ===")
        print(f"Mood: {metrics.mood}")
        print(f"Queries: {metrics.queries_planned} planned, {metrics.queries_failed} failed "
              f"({metrics.query_failure_rate:.0%})")
        print(f"Candidates: {metrics.candidates_found} found, {metrics.candidates_filtered} after filters, "
              f"{metrics.candidates_scored} scored")
        print(f"Selected: {metrics.tracks_selected} tracks")
        if metrics.unsatisfiable_artists:
            print(f"Artists without tracks: {', '.join(metrics.unsatisfiable_artists)}")
        print(f"Total Duration: {metrics.total_duration_ms}ms")
        for stage, duration in metrics.stage_durations_ms.items():
            print(f"  {stage}: {duration}ms")
