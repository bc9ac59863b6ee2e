"""Append-only ledger with audited lock/unlock pairs."""

import contextlib
import logging
import os
import time
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from ...domain.models.audit import LedgerEvent, LedgerEventType, format_ledger_id
from ...domain.services.ledger_auditor import LEDGER_ID
from .json_files import read_json, write_json

logger = logging.getLogger(__name__)


def _create_lock_file(lock_path: Path) -> bool:
    """Create ``lock_path`` exclusively. False when it already exists."""
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    try:
        fd = os.open(str(lock_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        return False
    os.close(fd)
    return True


class FileLedger:
    """ledger.json plus lock files for the few writes that need mutual exclusion."""

    def __init__(self, case_dir: Path, actor: str = "evidence-checker", lock_timeout: float = 5.0):
        """Initialize the ledger.

        Args:
            case_dir: Case directory
            actor: Name recorded on events written by this process
            lock_timeout: Seconds to wait for another writer to finish appending
        """
        self._case_dir = Path(case_dir)
        self._path = self._case_dir / "ledger.json"
        self._lock_path = self._case_dir / "ledger.json.lock"
        self._actor = actor
        self._lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[LedgerEvent]:
        """Ledger entries in file order."""
        data = read_json(self._path, default={"entries": []})
        entries = data.get("entries", []) if isinstance(data, dict) else data
        return [LedgerEvent(**entry) for entry in entries]

    def append(
        self,
        event: LedgerEventType,
        target: str = "",
        details: Optional[Dict[str, Any]] = None,
    ) -> LedgerEvent:
        """Append one event numbered after the highest id in the ledger.

        Raises:
            RuntimeError: If the ledger stays locked by another writer past the timeout
        """
        with self._ledger_lock():
            events = self.load()
            entry = LedgerEvent(
                id=format_ledger_id(self._highest_id(events) + 1),
                event=event,
                target=target,
                actor=self._actor,
                details=details or {},
            )
            events.append(entry)
            write_json(self._path, {"entries": [e.model_dump(mode="json") for e in events]})
        return entry

    @staticmethod
    def _highest_id(events: List[LedgerEvent]) -> int:
        numbers = [int(m.group(1)) for m in (LEDGER_ID.match(e.id) for e in events) if m]
        return max(numbers, default=0)

    @contextlib.contextmanager
    def _ledger_lock(self) -> Iterator[None]:
        deadline = time.monotonic() + self._lock_timeout
        while not _create_lock_file(self._lock_path):
            if time.monotonic() >= deadline:
                raise RuntimeError(f"Timed out waiting for the lock on '{self._path.name}'")
            time.sleep(0.01)
        try:
            yield
        finally:
            self._lock_path.unlink(missing_ok=True)

    @contextlib.contextmanager
    def locked(self, target: str) -> Iterator[LedgerEvent]:
        """Hold an exclusive lock on a case file for the duration of the block.

        The lock is a ``<target>.lock`` file created with O_EXCL, and both ends
        are recorded in the ledger so an unmatched lock shows up in the audit.

        Raises:
            RuntimeError: If another writer holds the lock
        """
        lock_path = self._case_dir / f"{target}.lock"
        if not _create_lock_file(lock_path):
            raise RuntimeError(f"Lock already held on '{target}'")

        try:
            event = self.append(LedgerEventType.FILE_LOCK, target)
        except BaseException:
            lock_path.unlink(missing_ok=True)
            raise
        logger.debug(f"🔒 {event.id} locked {target}")
        try:
            yield event
        finally:
            try:
                self.append(LedgerEventType.FILE_UNLOCK, target)
            finally:
                lock_path.unlink(missing_ok=True)
            logger.debug(f"🔓 unlocked {target}")
