import sys
from pathlib import Path

from loguru import logger


def get_log_file_path() -> Path:
    log_dir = Path.home() / ".procure" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "procure.log"


def setup_logger(verbose: bool = False) -> None:
    """Route engine logs to a rotating file, and to stderr when verbose."""
    logger.remove()
    logger.add(
        get_log_file_path(), rotation="10 MB", retention="7 days", compression="zip"
    )
    if verbose:
        logger.add(sys.stderr, level="DEBUG", format="{level: <8} {name}: {message}")
