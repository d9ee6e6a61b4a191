# cardsheet/utils/helpers.py
import logging
import re
from datetime import date
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Characters Windows refuses in file names, plus control characters
_UNSAFE_NAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_SIZE_UNITS = ('B', 'KB', 'MB', 'GB', 'TB')


def ensure_directory(directory: Union[str, Path]) -> Path:
    """Create the directory (and parents) when missing"""
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Directory ready: {path}")
    return path


def sanitize_filename(name: str) -> str:
    """Storage keys and export names become safe file names"""
    return _UNSAFE_NAME_CHARS.sub('_', name).strip() or 'untitled'


def dated_filename(prefix: str, extension: str, day: Optional[date] = None) -> str:
    """card-sheet-2024-05-01.json style name"""
    day = day or date.today()
    return sanitize_filename(f"{prefix}-{day.isoformat()}.{extension.lstrip('.')}")


def format_file_size(size: int) -> str:
    """1536 -> '1.5 KB'; used in log lines only"""
    value = float(size)
    unit = 0
    while value >= 1024 and unit < len(_SIZE_UNITS) - 1:
        value /= 1024
        unit += 1
    if unit == 0:
        return f"{int(value)} B"
    return f"{value:.1f} {_SIZE_UNITS[unit]}"
