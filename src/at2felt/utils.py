"""
Shared utilities: logging setup and step timing.
"""

import functools
import logging
import sys
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Optional


def setup_logging(
    verbose: bool,
    run_name: Optional[str] = None,
    enable_file_logging: bool = False,
    logs_dir: Path = Path("logs"),
) -> Optional[Path]:
    """
    Configure logging with optional timestamped file output.

    Args:
        verbose: Enable debug-level logging if True
        run_name: Command name used for log file naming
        enable_file_logging: Create timestamped log files when True
        logs_dir: Directory receiving log files

    Returns:
        Path of the log file when file logging is enabled, else None
    """
    level = logging.DEBUG if verbose else logging.INFO
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = None

    if enable_file_logging and run_name:
        logs_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = logs_dir / f"{run_name}_{timestamp}.log"

        handlers.append(logging.FileHandler(log_file, encoding='utf-8'))
        print(f"Logging to: {log_file}")

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True
    )

    # uvicorn and urllib3 are chatty at INFO
    if not verbose:
        for name in ("uvicorn", "uvicorn.access", "urllib3", "pyngrok"):
            logging.getLogger(name).setLevel(logging.WARNING)

    return log_file


def timer(func: Callable) -> Callable:
    """Decorator to time function execution."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        try:
            return func(*args, **kwargs)
        finally:
            logging.info(f"{func.__name__} completed in {time.time() - start_time:.2f} seconds")
    return wrapper
