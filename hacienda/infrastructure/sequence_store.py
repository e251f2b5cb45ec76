"""Cross-process sequence number allocation for the clave numerica.

Each (document type, branch, point of sale) triple owns a 10-digit counter.
Counters live in ``sequences.json`` inside the data directory, keyed
``{doc_type}-{branch}-{pos}``. Allocation is serialized across processes by a
lock directory created with ``mkdir`` (atomic on every filesystem), and the
file is always replaced whole via a uniquely named temporary file and
``os.replace``.

A lock that cannot be acquired within the timeout is presumed stale: it is
removed (with a warning) and acquisition is retried exactly once.
"""

import asyncio
import os
import secrets
import shutil
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated

from loguru import logger
from pydantic import Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.constants import (
    DEFAULT_BRANCH,
    DEFAULT_POS,
    MAX_SEQUENCE,
    MILLISECONDS_PER_SECOND,
    SEQUENCES_FILE_NAME,
    SEQUENCES_LOCK_NAME,
)
from hacienda.core.exceptions import (
    SequenceFileError,
    SequenceLockError,
    SequenceOverflowError,
    ValidationError,
)
from hacienda.core.types import SequenceMapping

_SEQUENCE_FILE_ADAPTER = TypeAdapter(
    dict[str, Annotated[int, Field(strict=True, ge=0, le=MAX_SEQUENCE)]]
)


def build_sequence_key(
    doc_type: str, branch: str = DEFAULT_BRANCH, pos: str = DEFAULT_POS
) -> str:
    """Build the compound key, e.g. ``01-001-00001``."""
    return f"{doc_type}-{branch}-{pos}"


class SequenceStore:
    """File-backed sequence counters shared by every process on the machine.

    Args:
        data_dir: Directory holding ``sequences.json`` and the lock directory.
        lock_timeout_ms: How long to wait for the lock before taking it over.
        lock_retry_ms: Delay between lock attempts.
        clock: Time source for the lock wait.
    """

    def __init__(
        self,
        data_dir: str | Path,
        lock_timeout_ms: int = 5000,
        lock_retry_ms: int = 50,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.data_dir = Path(data_dir).expanduser()
        self.lock_timeout_ms = lock_timeout_ms
        self.lock_retry_ms = lock_retry_ms
        self._clock = clock

    @property
    def sequences_path(self) -> Path:
        """Path of the persisted counter file."""
        return self.data_dir / SEQUENCES_FILE_NAME

    @property
    def lock_path(self) -> Path:
        """Path of the lock directory."""
        return self.data_dir / SEQUENCES_LOCK_NAME

    async def get_next_sequence(
        self, doc_type: str, branch: str = DEFAULT_BRANCH, pos: str = DEFAULT_POS
    ) -> int:
        """Allocate the next sequence number for a key (the first one is 1).

        Raises:
            SequenceOverflowError: If the counter is at MAX_SEQUENCE; nothing
                is written in that case.
            SequenceLockError: If the lock cannot be acquired even after
                removing a presumed-stale lock.
            SequenceFileError: If the counter file is corrupt.
        """
        key = build_sequence_key(doc_type, branch, pos)
        await asyncio.to_thread(self.data_dir.mkdir, parents=True, exist_ok=True)

        async with self._locked():
            sequences = await asyncio.to_thread(self._read)
            current = sequences.get(key, 0)
            if current >= MAX_SEQUENCE:
                raise SequenceOverflowError(key, current, MAX_SEQUENCE)

            sequences[key] = current + 1
            await asyncio.to_thread(self._write, sequences)

        logger.debug("Allocated sequence {} for {}", current + 1, key)
        return current + 1

    async def get_current_sequence(
        self, doc_type: str, branch: str = DEFAULT_BRANCH, pos: str = DEFAULT_POS
    ) -> int:
        """Current value of a counter without incrementing it (0 if unset)."""
        sequences = await asyncio.to_thread(self._read)
        return sequences.get(build_sequence_key(doc_type, branch, pos), 0)

    async def reset_sequence(
        self,
        doc_type: str,
        branch: str = DEFAULT_BRANCH,
        pos: str = DEFAULT_POS,
        value: int = 0,
    ) -> None:
        """Overwrite a counter directly, for manual recovery.

        This bypasses the allocation lock; do not run it while documents are
        being issued for the same key.
        """
        if not 0 <= value <= MAX_SEQUENCE:
            msg = f"Sequence value must be between 0 and {MAX_SEQUENCE}, got {value}"
            raise ValidationError(msg, details={"value": value})

        key = build_sequence_key(doc_type, branch, pos)
        await asyncio.to_thread(self.data_dir.mkdir, parents=True, exist_ok=True)
        sequences = await asyncio.to_thread(self._read)
        sequences[key] = value
        await asyncio.to_thread(self._write, sequences)
        logger.warning("Sequence {} reset to {}", key, value)

    @asynccontextmanager
    async def _locked(self) -> AsyncIterator[None]:
        await self._acquire_lock()
        try:
            yield
        finally:
            await asyncio.to_thread(self._release_lock)

    async def _acquire_lock(self) -> None:
        deadline = self._clock.now() + self.lock_timeout_ms / MILLISECONDS_PER_SECOND
        while True:
            try:
                await asyncio.to_thread(os.mkdir, self.lock_path)
            except FileExistsError:
                if self._clock.now() >= deadline:
                    break
                await self._clock.sleep(self.lock_retry_ms / MILLISECONDS_PER_SECOND)
            else:
                return

        logger.warning(
            "Sequence lock held for more than {}ms, removing presumed stale lock",
            self.lock_timeout_ms,
            lock_path=str(self.lock_path),
        )
        try:
            await asyncio.to_thread(shutil.rmtree, self.lock_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise SequenceLockError(str(self.lock_path), self.lock_timeout_ms) from e

        try:
            await asyncio.to_thread(os.mkdir, self.lock_path)
        except FileExistsError as e:
            raise SequenceLockError(str(self.lock_path), self.lock_timeout_ms) from e

    def _release_lock(self) -> None:
        try:
            os.rmdir(self.lock_path)
        except FileNotFoundError:
            logger.warning(
                "Sequence lock was already removed", lock_path=str(self.lock_path)
            )

    def _read(self) -> SequenceMapping:
        path = self.sequences_path
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}

        if not content.strip():
            return {}

        try:
            return dict(_SEQUENCE_FILE_ADAPTER.validate_json(content))
        except PydanticValidationError as e:
            raise SequenceFileError(str(path), str(e), cause=e) from e

    def _write(self, sequences: SequenceMapping) -> None:
        path = self.sequences_path
        temp_path = path.with_name(f"{path.name}.{secrets.token_hex(6)}.tmp")
        fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(_SEQUENCE_FILE_ADAPTER.dump_json(sequences, indent=2))
                f.write(b"\n")
            os.replace(temp_path, path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise
