import asyncio
import json
from collections import Counter
from pathlib import Path
from typing import Any

from src.config.logger_config import logger

BODY_FIELDS = ("response_json", "response_text")
ERROR_TEXT_LIMIT = 2000


class RawApiJsonlSink:
    """Append-only JSONL audit trail of every API attempt made during a run.

    Successful response bodies of a mirror run hold whole revision texts, so
    they are only kept when ``include_bodies`` is set. The text of failed
    attempts is always kept, truncated, since it is what explains a retry.
    """

    def __init__(self, output_dir: str | Path, run_id: str, include_bodies: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_id = run_id
        self.include_bodies = include_bodies
        self.file_path = self.output_dir / f"api_calls_{run_id}.jsonl"
        self.outcomes: Counter[str] = Counter()
        self._lock = asyncio.Lock()
        self._handle = self.file_path.open("a", encoding="utf-8")
        self._closed = False

    @property
    def events_written(self) -> int:
        return sum(self.outcomes.values())

    async def write_event(self, event: dict[str, Any]) -> None:
        record = {"run_id": self.run_id, **event}
        if not self.include_bodies:
            if record.get("outcome") in (None, "success"):
                for name in BODY_FIELDS:
                    record.pop(name, None)
            else:
                record.pop("response_json", None)
                if record.get("response_text"):
                    record["response_text"] = str(record["response_text"])[:ERROR_TEXT_LIMIT]
        line = json.dumps(record, ensure_ascii=False)
        async with self._lock:
            if self._closed:
                raise RuntimeError(f"Raw API log {self.file_path} is already closed")
            self._handle.write(line + "\n")
            self._handle.flush()
            self.outcomes[str(record.get("outcome") or "unknown")] += 1

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handle.close()
        if self.outcomes:
            logger.debug("Raw API log {}: {}", self.file_path, dict(self.outcomes))
