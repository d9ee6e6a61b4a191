# -*- coding: utf-8 -*-
# cardsheet/services/storage.py
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from cardsheet.exceptions import StorageWriteFailure
from cardsheet.utils.helpers import ensure_directory, sanitize_filename

logger = logging.getLogger(__name__)


class KeyValueStorage:
    """String storage addressed by a fixed key"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str):
        raise NotImplementedError


class MemoryStorage(KeyValueStorage):
    def __init__(self, quota: Optional[int] = None):
        self.quota = quota
        self.data: Dict[str, str] = {}
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str):
        if self.quota is not None and len(value) > self.quota:
            raise StorageWriteFailure(f"Storage quota exceeded ({len(value)} > {self.quota})")
        self.data[key] = value
        self.writes += 1


class FileStorage(KeyValueStorage):
    """One text file per key inside a state directory"""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{sanitize_filename(key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding='utf-8')
        except OSError as e:
            logger.error(f"Error reading storage {path}: {e}")
            return None

    def set(self, key: str, value: str):
        path = self._path(key)
        temp_path = path.with_suffix('.tmp')
        try:
            ensure_directory(str(self.directory))
            temp_path.write_text(value, encoding='utf-8')
            os.replace(temp_path, path)
        except OSError as e:
            raise StorageWriteFailure(f"Could not write {path}: {e}") from e
