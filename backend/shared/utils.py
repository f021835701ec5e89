import hashlib
import logging
import time
from pathlib import Path

from shared.config import ServiceConfig, config

__all__ = [
    "ServiceConfig",
    "config",
    "ensure_directory",
    "generate_job_id",
    "remove_quietly",
    "sanitize_filename",
    "setup_logging",
]


def setup_logging(service_name: str, log_level: str | None = None) -> logging.Logger:
    """Setup logging configuration for a service"""
    logger = logging.getLogger(service_name)
    level = log_level or config.get("log_level", "INFO")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(f"%(asctime)s - {service_name} - %(levelname)s - %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def generate_job_id(seed: str = "") -> str:
    """Generate a job id from the current time, unique per nanosecond."""
    stamp = str(time.time_ns())
    if not seed:
        return stamp
    return f"{stamp}-{hashlib.md5(seed.encode()).hexdigest()[:8]}"


def sanitize_filename(filename: str) -> str:
    """Sanitize filename for safe storage"""
    filename = Path(filename).name
    invalid_chars = '<>:"/\\|?*'
    for char in invalid_chars:
        filename = filename.replace(char, "_")
    return filename or "presentation.pptx"


def ensure_directory(path: str | Path) -> None:
    """Ensure directory exists, create if not"""
    Path(path).mkdir(parents=True, exist_ok=True)


def remove_quietly(path: str | Path, logger: logging.Logger | None = None) -> None:
    """Remove a file if present; failures are logged, never raised."""
    try:
        Path(path).unlink(missing_ok=True)
    except OSError as exc:
        if logger:
            logger.warning(f"Failed to remove {path}: {exc}")
