"""
File-based Profiler Storage

One JSON file per profile plus a JSONL search index.
Human-readable, easy to inspect, no external dependencies.

Layout:
    <folder>/index.jsonl
    <folder>/<token[-2:]>/<token[-4:-2]>/<token>.json

DESIGN RULES:
- Index is append-only (rewritten only when expiring profiles)
- write() never throws (returns False)
- Human-readable output
"""

import json
import logging
import shutil
import time
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from profiler.profile import Profile
from profiler.storage import (
    ProfilerStorage,
    RowFilter,
    flatten_profile,
    index_row,
    restore_profile,
    row_matches,
)


logger = logging.getLogger(__name__)


class FileProfilerStorage(ProfilerStorage):
    """
    Stores profiles as JSON files under a folder.

    Profiles older than `lifetime` seconds are removed whenever a new
    profile is indexed. A lifetime of None or 0 keeps everything.
    """

    INDEX_FILENAME = "index.jsonl"

    def __init__(self, folder: str, lifetime: Optional[int] = None):
        """
        Initialize file storage.

        Args:
            folder: Directory holding the profiles. Created if missing.
            lifetime: Seconds a profile is kept, None to keep forever.
        """
        if not folder:
            raise ValueError("The profiler storage folder must not be empty.")

        self._folder = Path(folder)
        self._lifetime = lifetime
        self._lock = Lock()

        self._folder.mkdir(parents=True, exist_ok=True)

    @property
    def folder(self) -> Path:
        return self._folder

    @property
    def index_path(self) -> Path:
        return self._folder / self.INDEX_FILENAME

    def _filename(self, token: str) -> Path:
        return self._folder / token[-2:] / token[-4:-2] / f"{token}.json"

    # --- Contract ---

    def read(self, token: str) -> Optional[Profile]:
        data = self._read_data(token)
        if data is None:
            return None
        return restore_profile(token, data, self._read_data)

    def write(self, profile: Profile) -> bool:
        """
        Write the profile file, indexing it if it is new.

        Never throws - failures are logged and reported as False.
        """
        path = self._filename(profile.token)

        try:
            payload = json.dumps(flatten_profile(profile))

            with self._lock:
                is_new = not path.exists()
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(payload, encoding="utf-8")

                if is_new:
                    with open(self.index_path, "a", encoding="utf-8") as f:
                        f.write(json.dumps(index_row(profile)) + "\n")

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to write profile {profile.token}: {e}")
            return False

        if is_new and self._lifetime:
            try:
                self.remove_expired()
            except OSError as e:
                # The profile itself is stored
                logger.error(f"Failed to remove expired profiles: {e}")

        return True

    def purge(self) -> None:
        with self._lock:
            for entry in self._folder.iterdir():
                if entry.is_dir():
                    shutil.rmtree(entry)
                else:
                    entry.unlink()

    def find(
        self,
        ip: Optional[str],
        url: Optional[str],
        limit: Optional[int],
        method: Optional[str],
        start: Optional[int] = None,
        end: Optional[int] = None,
        status_code: Optional[str] = None,
        filter: Optional[RowFilter] = None,
    ) -> List[Profile]:
        results = []

        for row in reversed(self._read_index()):
            if limit is not None and len(results) >= limit:
                break
            if not row_matches(row, ip, url, method, start, end, status_code, filter):
                continue

            profile = self.read(row["token"])
            if profile is not None:
                results.append(profile)

        return results

    # --- Maintenance ---

    def remove_expired(self, now: Optional[float] = None) -> int:
        """
        Drop profiles older than the configured lifetime.

        Returns:
            Number of profiles removed
        """
        if not self._lifetime:
            return 0

        cutoff = (now if now is not None else time.time()) - self._lifetime

        with self._lock:
            rows = self._read_index()
            kept = [row for row in rows if (row.get("time") or 0) >= cutoff]
            expired = [row for row in rows if (row.get("time") or 0) < cutoff]

            if not expired:
                return 0

            for row in expired:
                self._filename(row["token"]).unlink(missing_ok=True)

            with open(self.index_path, "w", encoding="utf-8") as f:
                for row in kept:
                    f.write(json.dumps(row) + "\n")

        logger.info(f"Removed {len(expired)} expired profiles")
        return len(expired)

    # --- Internal ---

    def _read_data(self, token: str) -> Optional[Dict[str, Any]]:
        path = self._filename(token)
        if not path.exists():
            return None

        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read profile {token}: {e}")
            return None

    def _read_index(self) -> List[Dict[str, Any]]:
        rows = []

        if not self.index_path.exists():
            return rows

        with open(self.index_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(json.loads(line))
                except ValueError:
                    logger.warning("Skipping malformed profiler index line")

        return rows
