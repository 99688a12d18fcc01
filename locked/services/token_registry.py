"""
Paired-token registry.

Holds the identifier of the single physical token (NFC tag) allowed to
toggle the lock. Pairing replaces any previous token. The id is persisted as
a small JSON file so pairing survives restarts; pass path=None to keep it in
memory only.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

_KEY_PAIRED_ID = "paired_token_id"


def format_tag_id(raw: bytes) -> str:
    """Render raw tag id bytes as upper-case hex pairs joined by ':'."""
    return ":".join(f"{b:02X}" for b in raw)


class TokenRegistry:
    """Thread-safe store for the one paired token id."""

    def __init__(self, path: Optional[Union[str, Path]] = None) -> None:
        self.path: Optional[Path] = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._paired_id: Optional[str] = self._load()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_paired(self) -> bool:
        with self._lock:
            return self._paired_id is not None

    def paired_id(self) -> Optional[str]:
        with self._lock:
            return self._paired_id

    def paired_display_id(self) -> Optional[str]:
        """Paired id with everything but the last 8 characters hidden."""
        with self._lock:
            full = self._paired_id
        if full is None:
            return None
        return f"***{full[-8:]}" if len(full) > 8 else full

    def pair(self, candidate_id: str) -> None:
        if not candidate_id:
            raise ValueError("token id must not be empty")
        with self._lock:
            previous = self._paired_id
            self._paired_id = candidate_id
            self._save()
        if previous is not None and previous != candidate_id:
            logger.info("Paired token replaced")
        else:
            logger.info("Token paired")

    def unpair(self) -> None:
        with self._lock:
            self._paired_id = None
            self._save()
        logger.info("Token unpaired")

    def verify(self, candidate_id: Optional[str]) -> bool:
        with self._lock:
            paired = self._paired_id
        if paired is None:
            logger.warning("Token verification requested but no token is paired")
            return False
        match = candidate_id is not None and candidate_id == paired
        logger.debug("Token verification: %s", "MATCH" if match else "NO MATCH")
        return match

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load(self) -> Optional[str]:
        if self.path is None or not self.path.exists():
            return None
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load paired token, starting unpaired: {e}")
            return None
        value = data.get(_KEY_PAIRED_ID)
        return value if isinstance(value, str) and value else None

    def _save(self) -> None:
        """Atomic write: temp file in the same directory, then os.replace."""
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(suffix=".tmp", prefix="token_", dir=self.path.parent)
        try:
            with os.fdopen(temp_fd, "w") as f:
                json.dump({_KEY_PAIRED_ID: self._paired_id}, f)
            os.replace(temp_path, self.path)
        except Exception:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise
