"""
Audit Log - Append-only JSONL record of notable gateway actions.

One record per line: {"ts": ..., "event": ..., "payload": ...}.
The gateway only ever appends; rotation and retention belong to whoever
owns the file.

Persistence is best-effort: a failed write is logged and reported as
False, never raised, so audit trouble cannot block a trading action.

Usage:
    from data.audit_log import AuditLog

    audit = AuditLog(Path("~/.skybit/audit.jsonl").expanduser())
    persisted = await audit.append_async("trade.place_order", {"symbol": "AAPL"})
"""

import asyncio
import json
import logging
import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


@dataclass
class AuditRecord:
    """A single audit entry."""
    ts: str
    event: Any
    payload: Any

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class AuditLog:
    """
    Append-only JSONL writer.

    Writes are serialized with a lock and each record goes out in a single
    write() of one newline-terminated line, so concurrent callers never
    interleave mid-record.
    """

    def __init__(self, path: Path):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._write_count = 0
        self._failure_count = 0

    @property
    def path(self) -> Path:
        return self._path

    def get_stats(self) -> Dict[str, Any]:
        return {
            "path": str(self._path),
            "writes": self._write_count,
            "failures": self._failure_count,
        }

    def append(self, event: Any, payload: Any = None) -> bool:
        """Append one record. Returns True if it reached disk."""
        record = AuditRecord(
            ts=datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            event=event,
            payload=payload,
        )
        try:
            line = json.dumps(record.to_dict(), default=str) + "\n"
        except (TypeError, ValueError) as e:
            logger.warning(f"Audit record not serializable ({event}): {e}")
            self._failure_count += 1
            return False

        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
            except OSError as e:
                logger.warning(f"Audit write failed for {self._path}: {e}")
                self._failure_count += 1
                return False
            self._write_count += 1
        return True

    async def append_async(self, event: Any, payload: Any = None) -> bool:
        """append() off the event loop thread."""
        return await asyncio.to_thread(self.append, event, payload)
