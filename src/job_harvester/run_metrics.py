import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _make_run_id() -> str:
    return datetime.now().strftime("%Y%m%d_%H%M%S")


@dataclass
class RunReport:
    """
    Per-run counters and events.

    A run can end normally, be cancelled, or abort on a fatal error; the
    report is produced in every case so partial progress stays visible.
    """

    source: str = "indeed"
    run_id: str = field(default_factory=_make_run_id)
    started_at_iso: str = field(default_factory=_utc_now_iso)
    started_at_monotonic: float = field(default_factory=time.monotonic)
    ended_at_iso: Optional[str] = None
    duration_seconds: Optional[float] = None
    counters: Dict[str, int] = field(default_factory=dict)
    gauges: Dict[str, Any] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)
    artifacts: List[str] = field(default_factory=list)
    fatal_error: Optional[str] = None
    cancelled: bool = False
    output_path: Optional[Path] = None

    def inc(self, key: str, amount: int = 1) -> None:
        if not key:
            return
        self.counters[key] = int(self.counters.get(key, 0)) + int(amount)

    def count(self, key: str) -> int:
        return int(self.counters.get(key, 0))

    def set_gauge(self, key: str, value: Any) -> None:
        if not key:
            return
        self.gauges[key] = value

    def record_event(self, kind: str, **data: Any) -> None:
        if not kind:
            return
        payload: Dict[str, Any] = {"t": _utc_now_iso(), "kind": kind}
        payload.update({k: v for k, v in data.items() if v is not None})
        self.events.append(payload)

    def events_of(self, kind: str) -> List[Dict[str, Any]]:
        return [event for event in self.events if event.get("kind") == kind]

    def add_artifacts(self, paths: Optional[Dict[str, str]]) -> None:
        if paths:
            self.artifacts.extend(paths.values())

    @property
    def ok(self) -> bool:
        return self.fatal_error is None

    def finish(self) -> None:
        """Mark the run as finished and record end time."""
        if self.ended_at_iso is None:
            self.ended_at_iso = _utc_now_iso()
            self.duration_seconds = max(time.monotonic() - self.started_at_monotonic, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        ended_at = self.ended_at_iso or _utc_now_iso()
        duration = self.duration_seconds
        if duration is None:
            duration = max(time.monotonic() - self.started_at_monotonic, 0.0)
        payload: Dict[str, Any] = {
            "source": self.source,
            "run_id": self.run_id,
            "started_at": self.started_at_iso,
            "ended_at": ended_at,
            "duration_seconds": round(duration, 6),
            "counters": dict(self.counters),
            "cancelled": self.cancelled,
            "fatal_error": self.fatal_error,
        }
        if self.gauges:
            payload["gauges"] = dict(self.gauges)
        if self.events:
            payload["events"] = list(self.events)
        if self.artifacts:
            payload["artifacts"] = list(self.artifacts)
        return payload

    def summary(self) -> str:
        parts = [
            f"collected={self.count('collected')}",
            f"saved={self.count('saved')}",
            f"skipped={self.count('skipped')}",
            f"errored={self.count('errored')}",
            f"queries_failed={self.count('queries_failed')}",
        ]
        if self.cancelled:
            parts.append("cancelled")
        if self.fatal_error:
            parts.append(f"fatal={self.fatal_error}")
        return " ".join(parts)

    def write_json(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, sort_keys=True, default=str), encoding="utf-8")
        self.output_path = path
        return path
