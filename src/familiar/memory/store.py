"""Long-term observation memory stored as JSON lines."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_MAX_KEYWORDS = 4
_MAX_RESULTS = 20
_PREVIEW_CHARS = 120

EMOTIONS = ("neutral", "happy", "sad", "curious", "excited", "moved")


@dataclass(slots=True)
class Observation:
    """One remembered event."""

    id: str
    content: str
    timestamp: str  # ISO 8601, UTC
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    emotion: str = "neutral"
    image_path: str | None = None
    kind: str = "observation"


class ObservationStore:
    """Append-only observation log with keyword and recency lookup.

    Every record is one JSON object per line; lines that fail to parse are
    skipped with a warning so a single bad write never hides the rest.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else Path.home() / ".familiar_ai" / "observations.jsonl"

    @property
    def path(self) -> Path:
        return self._path

    def add(
        self,
        content: str,
        *,
        emotion: str = "neutral",
        image_path: str | None = None,
        now: datetime | None = None,
    ) -> Observation:
        """Persist a new observation and return it."""
        stamp = now or datetime.now(UTC)
        obs = Observation(
            id=uuid.uuid4().hex,
            content=content,
            timestamp=stamp.strftime("%Y-%m-%dT%H:%M:%S"),
            date=stamp.strftime("%Y-%m-%d"),
            time=stamp.strftime("%H:%M"),
            emotion=emotion if emotion in EMOTIONS else "neutral",
            image_path=image_path,
        )
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(obs), ensure_ascii=False) + "\n")
        logger.debug("Remembered %s in %s", obs.id, self._path)
        return obs

    def load(self) -> list[Observation]:
        """All observations in insertion order."""
        if not self._path.is_file():
            return []
        rows: list[Observation] = []
        with self._path.open(encoding="utf-8") as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(Observation(**json.loads(line)))
                except (json.JSONDecodeError, TypeError) as exc:
                    logger.warning("Skipping bad memory record %s:%d: %s", self._path, lineno, exc)
        return rows

    def recent(self, n: int) -> list[Observation]:
        """The *n* newest observations, newest first."""
        rows = sorted(self.load(), key=lambda o: o.timestamp, reverse=True)
        return rows[: max(0, n)]

    def search(self, query: str, n: int) -> list[Observation]:
        """Observations containing any of the first few query words, newest first."""
        keywords = [w.lower() for w in query.split() if len(w) > 1][:_MAX_KEYWORDS]
        if not keywords:
            return []
        hits = [o for o in self.load() if any(k in o.content.lower() for k in keywords)]
        hits.sort(key=lambda o: o.timestamp, reverse=True)
        return hits[: max(0, n)]

    def recall(self, query: str, n: int = 3) -> list[Observation]:
        """Keyword matches, or the most recent observations when nothing matches."""
        n = max(1, min(n, _MAX_RESULTS))
        return self.search(query, n) or self.recent(n)


def format_memories(rows: list[Observation]) -> str:
    """Render recall results for the model."""
    if not rows:
        return "No relevant memories found."
    lines = []
    for r in rows:
        emotion = f" [{r.emotion}]" if r.emotion != "neutral" else ""
        image = " 📷" if r.image_path else ""
        lines.append(f"- {r.date} {r.time}{emotion}{image}: {r.content[:_PREVIEW_CHARS]}")
    return "\n".join(lines)


def format_context(rows: list[Observation]) -> str:
    """Render recent observations for the system prompt's memory section."""
    return "\n".join(f"  - [{r.date} {r.time}] {r.content}" for r in rows)
