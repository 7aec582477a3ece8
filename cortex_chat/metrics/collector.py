"""
Latency, error and interruption counters for chat and voice sessions.
"""

import json
import time
from dataclasses import dataclass, asdict, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any
import structlog

logger = structlog.get_logger()


LATENCY_KINDS = ("model", "stt", "tts")


@dataclass
class LatencyMetrics:
    """Latency statistics for one component."""
    min: float
    max: float
    avg: float
    p50: float
    p95: float
    samples: int


@dataclass
class SessionMetrics:
    """Metrics for a single run of the client."""
    session_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    turns: int = 0
    latencies: Dict[str, List[float]] = field(
        default_factory=lambda: {kind: [] for kind in LATENCY_KINDS}
    )
    errors: List[Dict[str, Any]] = field(default_factory=list)
    interruptions: int = 0


class MetricsCollector:
    """
    Collects per-session metrics.

    Recording calls are no-ops until start_session() is called, so
    components can hold an optional collector without checking its state.
    """

    def __init__(self, storage_path: Optional[Path] = None):
        self.storage_path = Path(storage_path or "~/.cortex-chat/metrics").expanduser()
        self.current_session: Optional[SessionMetrics] = None
        self.session_start_time: Optional[float] = None

    def start_session(self, session_id: str) -> None:
        logger.debug("Starting metrics collection", session_id=session_id)
        self.current_session = SessionMetrics(
            session_id=session_id, start_time=datetime.now()
        )
        self.session_start_time = time.time()

    def end_session(self) -> None:
        if not self.current_session:
            logger.warning("No active session to end")
            return

        self.current_session.end_time = datetime.now()
        logger.debug(
            "Ending metrics collection",
            session_id=self.current_session.session_id,
            turns=self.current_session.turns,
        )

    def record_latency(self, kind: str, latency_ms: float) -> None:
        if kind not in LATENCY_KINDS:
            raise ValueError(f"Unknown latency kind: {kind}")
        if self.current_session:
            self.current_session.latencies[kind].append(latency_ms)

    def record_turn(self) -> None:
        """Record a completed user/assistant exchange."""
        if self.current_session:
            self.current_session.turns += 1

    def record_error(self, component: str, error: str) -> None:
        if self.current_session:
            self.current_session.errors.append(
                {
                    "timestamp": datetime.now().isoformat(),
                    "component": component,
                    "error": error,
                }
            )

    def record_interruption(self) -> None:
        if self.current_session:
            self.current_session.interruptions += 1

    @staticmethod
    def _calculate_latency_stats(latencies: List[float]) -> LatencyMetrics:
        if not latencies:
            return LatencyMetrics(0, 0, 0, 0, 0, 0)

        sorted_latencies = sorted(latencies)
        count = len(sorted_latencies)

        def percentile(p: float) -> float:
            return sorted_latencies[min(int(p * count), count - 1)]

        return LatencyMetrics(
            min=sorted_latencies[0],
            max=sorted_latencies[-1],
            avg=sum(sorted_latencies) / count,
            p50=percentile(0.5),
            p95=percentile(0.95),
            samples=count,
        )

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of current session metrics."""
        if not self.current_session:
            return {"error": "No active session"}

        session = self.current_session
        summary: Dict[str, Any] = {
            "session_id": session.session_id,
            "session_duration_seconds": time.time() - (self.session_start_time or time.time()),
            "turns": session.turns,
            "total_errors": len(session.errors),
            "interruptions": session.interruptions,
            "error_rate": len(session.errors) / max(1, session.turns),
        }
        for kind in LATENCY_KINDS:
            summary[f"{kind}_latency_ms"] = asdict(
                self._calculate_latency_stats(session.latencies[kind])
            )
        return summary

    def save_metrics(self) -> Optional[Path]:
        """Write the current session to a JSON file and return its path."""
        if not self.current_session:
            logger.warning("No session to save")
            return None

        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            filename = (
                f"session_{self.current_session.session_id}_"
                f"{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
            )
            filepath = self.storage_path / filename

            session_dict = asdict(self.current_session)
            session_dict["start_time"] = self.current_session.start_time.isoformat()
            session_dict["end_time"] = (
                self.current_session.end_time.isoformat()
                if self.current_session.end_time
                else None
            )

            with open(filepath, "w") as f:
                json.dump(session_dict, f, indent=2)

            logger.info("Metrics saved", filepath=str(filepath))
            return filepath

        except OSError as e:
            logger.error("Failed to save metrics", error=str(e))
            return None
