"""
Totem Relay: Interaction Log
==============================
Append-only JSONL store of every chat exchange.

One InteractionLog per configured file. Writes are best-effort: a
failed append is logged and swallowed so the scene still gets its
reply. Reads walk the file from the end, skip anything that does not
parse, and return newest-first.

No locking. Concurrent appends rely on the OS append guarantee for
small writes, and a read may miss records written while it runs.
"""

import json
import logging
import os
from collections.abc import Iterator

from pydantic import ValidationError

from models import InteractionRecord
from services.exceptions import InteractionLogNotFoundError

logger = logging.getLogger("totem.log")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100

_EXPORT_CHUNK_SIZE = 64 * 1024


class InteractionLog:
    """Line-delimited JSON log of interactions. One per log file."""

    def __init__(self, path: str):
        self.path = path
        logger.debug("InteractionLog created: path=%s", path)

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    def append(self, record: InteractionRecord) -> bool:
        """
        Append one record as a single JSON line.

        Creates the file (and its directory) on first write. Never raises:
        I/O errors are reported on the error log and False is returned.
        """
        line = record.model_dump_json() + "\n"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
        except OSError as e:
            logger.error("Log write error: %s (path=%s)", e, self.path)
            return False

        logger.info(
            "Record appended: player=%s, state=%s, message=%.60s",
            record.playerId or "-", record.state.value, record.message,
        )
        return True

    def read_recent(
        self,
        limit: int = DEFAULT_LIMIT,
        player: str | None = None,
    ) -> list[InteractionRecord]:
        """
        Return up to ``min(limit, 100)`` records, newest first.

        Args:
            limit:  Requested number of records (clamped to MAX_LIMIT).
            player: Only keep records from this player. Records without
                    a playerId are never filtered out.

        Returns:
            List of InteractionRecord, newest first. Empty if the log
            does not exist yet.
        """
        cap = min(limit, MAX_LIMIT)
        if cap <= 0 or not self.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8", errors="replace") as f:
                lines = f.read().splitlines()
        except OSError as e:
            logger.error("Log read error: %s (path=%s)", e, self.path)
            return []

        out: list[InteractionRecord] = []
        for line in reversed(lines):
            if len(out) >= cap:
                break
            if not line.strip():
                continue
            record = _parse_line(line)
            if record is None:
                continue
            if player and record.playerId and record.playerId != player:
                continue
            out.append(record)

        logger.debug(
            "read_recent: limit=%d, player=%s, returned=%d of %d lines",
            cap, player or "-", len(out), len(lines),
        )
        return out

    def iter_raw(self, chunk_size: int = _EXPORT_CHUNK_SIZE) -> Iterator[bytes]:
        """
        Stream the raw log file, byte for byte.

        Raises:
            InteractionLogNotFoundError: If nothing has been logged yet.
                Checked here, not on first iteration.
        """
        if not self.exists():
            raise InteractionLogNotFoundError(self.path)
        logger.info("Exporting interaction log: %d bytes", os.path.getsize(self.path))
        return self._read_chunks(chunk_size)

    def _read_chunks(self, chunk_size: int) -> Iterator[bytes]:
        with open(self.path, "rb") as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                yield chunk


def _parse_line(line: str) -> InteractionRecord | None:
    """Parse one JSONL line. Corrupt or foreign lines yield None."""
    try:
        data = json.loads(line)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    try:
        return InteractionRecord.model_validate(data)
    except ValidationError:
        return None
