# -*- coding: utf-8 -*-
# cardsheet/utils/logger.py
import logging
from datetime import date
from pathlib import Path
from typing import Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
QUIET_LOGGERS = ('PIL', 'reportlab', 'matplotlib', 'asyncio')


def setup_logging(log_dir: Union[str, Path] = "logs", level: int = logging.INFO) -> logging.Logger:
    """One dated log file per day plus console output for the cardsheet package"""
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)
    log_file = log_path / f"card_sheet_{date.today():%Y%m%d}.log"

    file_handler = logging.FileHandler(log_file, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    package_logger = logging.getLogger('cardsheet')
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)
    package_logger.setLevel(min(level, logging.INFO))
    package_logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return package_logger
