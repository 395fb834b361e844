# tokenflow/state.py
from __future__ import annotations

import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

import bittensor as bt

from tokenflow.errors import PersistenceError


class CheckpointStore:
    """
    Durable "last fully scanned block" marker with atomic writes.

    The file holds a single decimal block number. Every block at or below it
    has been scanned and its records handed to the sink; the scheduler is the
    only writer.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._file_lock = threading.Lock()
        self._last_saved: Optional[int] = None

    # ---------- file ops ----------
    def _atomic_write_text(self, text: str) -> None:
        """
        Write atomically on the same filesystem using a temp file + os.replace.
        A crash mid-write leaves either the old file or the new one, never a partial file.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._file_lock:
            tmp = tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=str(self.path.parent),
                prefix=self.path.name + ".",
                suffix=f".tmp.{os.getpid()}",
                delete=False,
            )
            tmp_path = Path(tmp.name)
            try:
                with tmp:
                    tmp.write(text)
                    tmp.flush()
                    os.fsync(tmp.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                tmp_path.unlink(missing_ok=True)
                raise
            self._fsync_dir()

    def _fsync_dir(self) -> None:
        # Persist the rename itself; not every platform can open a directory.
        if not hasattr(os, "O_DIRECTORY"):
            return
        fd = os.open(str(self.path.parent), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    # ---------- public API ----------
    def load(self) -> Optional[int]:
        """Return the persisted block number, or None on first run."""
        try:
            text = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            bt.logging.info(f"[CHECKPOINT] no checkpoint at {self.path}")
            return None
        except OSError as e:
            raise PersistenceError(f"cannot read checkpoint {self.path}: {e}") from e
        try:
            value = int(text)
        except ValueError:
            raise PersistenceError(f"corrupt checkpoint {self.path}: {text[:32]!r}") from None
        if value < 0:
            raise PersistenceError(f"corrupt checkpoint {self.path}: negative block {value}")
        self._last_saved = value
        bt.logging.info(f"[CHECKPOINT] loaded last scanned block {value:,} from {self.path}")
        return value

    def save(self, block_number: int) -> None:
        """Durably record *block_number*; never moves backwards."""
        if self._last_saved is not None and block_number < self._last_saved:
            raise PersistenceError(
                f"refusing to move checkpoint backwards: {block_number} < {self._last_saved}"
            )
        try:
            self._atomic_write_text(f"{int(block_number)}\n")
        except OSError as e:
            raise PersistenceError(f"cannot write checkpoint {self.path}: {e}") from e
        self._last_saved = int(block_number)
        bt.logging.debug(f"[CHECKPOINT] saved {block_number:,}")

    def wipe(self) -> None:
        """Delete the checkpoint file (fresh start)."""
        bt.logging.warning(f"[CHECKPOINT] wiping {self.path}")
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"cannot remove checkpoint {self.path}: {e}") from e
        self._last_saved = None
