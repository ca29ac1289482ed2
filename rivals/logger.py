"""JSONL event log, round summaries and the frontend activity feed."""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class SummaryCollector:
    """Accumulates per-agent metrics over a session.

    Call the ``record_*`` methods as turns complete, then ``finalize()`` to
    get the summary dict.
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._rounds: int = 0
        self._actions_executed: int = 0
        self._actions_by_type: dict[str, int] = {}
        self._errors: int = 0
        self._errors_by_code: dict[str, int] = {}
        self._llm_tokens: int = 0
        self._llm_cost: float = 0.0
        self._highlights: list[str] = []
        self._per_agent: dict[str, dict[str, int]] = {}

    def _agent(self, agent: str) -> dict[str, int]:
        return self._per_agent.setdefault(
            agent, {"actions": 0, "successes": 0, "failures": 0, "skipped": 0, "tokens": 0}
        )

    def record_round(self) -> None:
        self._rounds += 1

    def record_action(self, action: str, success: bool = True, agent: str | None = None) -> None:
        self._actions_executed += 1
        self._actions_by_type[action] = self._actions_by_type.get(action, 0) + 1
        if not success:
            self._errors += 1
        if agent is not None:
            counts = self._agent(agent)
            counts["actions"] += 1
            counts["successes" if success else "failures"] += 1

    def record_error(self, code: str, agent: str | None = None) -> None:
        """A failure that happened before any action was attempted."""
        self._errors += 1
        self._errors_by_code[code] = self._errors_by_code.get(code, 0) + 1
        if agent is not None:
            self._agent(agent)["failures"] += 1

    def record_skip(self, agent: str) -> None:
        self._agent(agent)["skipped"] += 1

    def record_llm_usage(self, tokens: int, cost: float, agent: str | None = None) -> None:
        self._llm_tokens += tokens
        self._llm_cost += cost
        if agent is not None:
            self._agent(agent)["tokens"] += tokens

    def add_highlight(self, text: str) -> None:
        self._highlights.append(text)

    def finalize(self) -> dict[str, Any]:
        """Return the summary dict and reset the collector."""
        summary: dict[str, Any] = {
            "timestamp": _now_iso(),
            "rounds": self._rounds,
            "actions_executed": self._actions_executed,
            "actions_by_type": self._actions_by_type.copy(),
            "errors": self._errors,
            "errors_by_code": self._errors_by_code.copy(),
            "total_llm_tokens": self._llm_tokens,
            "total_llm_cost": round(self._llm_cost, 6),
            "highlights": self._highlights.copy(),
            "per_agent": {k: v.copy() for k, v in self._per_agent.items()},
        }
        self._reset()
        return summary


class EventLogger:
    """Append-only JSONL event log in a per-run directory.

    Layout:
        {logs_dir}/{run_id}/events.jsonl
        {logs_dir}/{run_id}/summary.json   (written by write_summary)
        {logs_dir}/latest -> {run_id}
    """

    output_path: Path
    _sequence: int

    def __init__(self, logs_dir: str | Path, run_id: str | None = None) -> None:
        self._logs_dir = Path(logs_dir)
        self._run_id = run_id or datetime.now().strftime("run_%Y%m%d_%H%M%S")
        self._sequence = 0

        self.run_dir = self._logs_dir / self._run_id
        self.run_dir.mkdir(parents=True, exist_ok=True)
        self.output_path = self.run_dir / "events.jsonl"
        self.output_path.write_text("")
        self._link_latest()

    def _link_latest(self) -> None:
        latest_link = self._logs_dir / "latest"
        if latest_link.is_symlink():
            latest_link.unlink()
        elif latest_link.exists():
            if latest_link.is_dir():
                shutil.rmtree(latest_link)
            else:
                latest_link.unlink()
        try:
            latest_link.symlink_to(self._run_id)
        except OSError as e:
            # Some filesystems (and Windows without privileges) refuse symlinks
            logger.debug("Could not create latest symlink: %s", e)

    def log(self, event_type: str, data: dict[str, Any]) -> None:
        """Append one event; every event carries a monotonic ``sequence``."""
        self._sequence += 1
        event: dict[str, Any] = {
            "timestamp": _now_iso(),
            "sequence": self._sequence,
            "event_type": event_type,
            **data,
        }
        with open(self.output_path, "a") as f:
            f.write(json.dumps(event, default=str) + "\n")

    def write_summary(self, summary: dict[str, Any]) -> Path:
        path = self.run_dir / "summary.json"
        path.write_text(json.dumps(summary, indent=2))
        return path

    def read_recent(self, n: int = 50) -> list[dict[str, Any]]:
        if not self.output_path.exists():
            return []
        lines = [line for line in self.output_path.read_text().split("\n") if line]
        return [json.loads(line) for line in lines[-n:]]

    @property
    def run_id(self) -> str:
        return self._run_id

    @property
    def logs_dir(self) -> Path:
        return self._logs_dir


@dataclass
class ActivityEntry:
    """One decision as shown in the frontend feed."""

    agent: str
    phase: str
    action: str
    description: str
    reasoning: str = ""
    tx_digest: str | None = None
    success: bool = True
    details: dict[str, Any] | None = None
    timestamp: str = field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["txDigest"] = data.pop("tx_digest")
        if data["details"] is None:
            del data["details"]
        return data


class ActivityLog:
    """Newest-first JSON array, capped, rewritten on every entry."""

    def __init__(self, path: str | Path, max_entries: int = 200) -> None:
        self.path = Path(path)
        self.max_entries = max_entries

    def load(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            entries = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Activity feed unreadable, starting fresh: %s", e)
            return []
        return entries if isinstance(entries, list) else []

    def append(self, entry: ActivityEntry) -> None:
        entries = self.load()
        entries.insert(0, entry.to_dict())
        del entries[self.max_entries:]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(entries, indent=2))
        os.replace(tmp_path, self.path)
