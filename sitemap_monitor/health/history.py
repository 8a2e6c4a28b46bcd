"""On-disk history of health snapshots, one JSON file per run."""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import structlog

from ..models import HealthSnapshot

logger = structlog.get_logger(__name__)

STAMP_FORMAT = "%Y%m%dT%H%M%S%fZ"
_FILENAME_RE = re.compile(r"^health-check-(?P<env>.+)-(?P<stamp>\d{8}T\d{12}Z)\.json$")


def _stamp(ts: datetime) -> str:
    if ts.tzinfo is not None:
        ts = ts.astimezone(timezone.utc)
    return ts.strftime(STAMP_FORMAT)


def _parse_name(name: str) -> tuple[str, datetime] | None:
    m = _FILENAME_RE.match(name)
    if not m:
        return None
    try:
        ts = datetime.strptime(m.group("stamp"), STAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
    return m.group("env"), ts


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    tmp.replace(path)


class HistoryStore:
    """Append-only snapshot history. Single writer per directory."""

    def __init__(self, directory: Path | str, log: Any = None):
        self.directory = Path(directory)
        self.log = log or logger

    def _entries(self, environment: str | None = None) -> list[tuple[datetime, Path]]:
        if not self.directory.is_dir():
            return []
        entries: list[tuple[datetime, Path]] = []
        for path in self.directory.iterdir():
            parsed = _parse_name(path.name)
            if parsed is None:
                continue
            env, ts = parsed
            if environment is not None and env != environment:
                continue
            entries.append((ts, path))
        entries.sort(key=lambda e: e[0])
        return entries

    def save(self, snapshot: HealthSnapshot) -> Path:
        path = self.directory / f"health-check-{snapshot.environment}-{_stamp(snapshot.timestamp)}.json"
        _write_json_atomic(path, snapshot.to_dict())
        self.log.debug("Saved health snapshot", path=str(path), score=snapshot.overall_score)
        return path

    def load(self, environment: str, limit: int = 30) -> list[HealthSnapshot]:
        """Most recent ``limit`` snapshots for an environment, oldest first.

        Unreadable files are skipped.
        """
        if limit <= 0:
            return []
        snapshots: list[HealthSnapshot] = []
        for _, path in self._entries(environment)[-limit:]:
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                snapshots.append(HealthSnapshot.from_dict(data))
            except (OSError, ValueError, KeyError, TypeError) as e:
                self.log.warning("Skipping unreadable snapshot", file=path.name, error=str(e))
        return snapshots

    def prune(self, retention_days: int, now: datetime | None = None) -> int:
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)
        removed = 0
        for ts, path in self._entries():
            if ts >= cutoff:
                break
            try:
                path.unlink()
                removed += 1
            except OSError as e:
                self.log.warning("Failed to delete old snapshot", file=path.name, error=str(e))
        if removed:
            self.log.info("Pruned health history", removed=removed, retention_days=retention_days)
        return removed
