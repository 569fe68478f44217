"""
Logging for the queue workers and the publishing scheduler.

Worker and scheduler output is read from stdout (RunPod console, container
logs), so every line carries a trace id: the RunPod job id for handler runs,
the scheduler job id for periodic sweeps.
"""
import logging
from typing import Any, Dict, Optional


LOG_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | [%(trace_id)s] %(message)s'
DEFAULT_LOGGER = "crosspost_worker"


def setup_logger(
    log_level: int = logging.INFO,
    logger_name: str = DEFAULT_LOGGER
) -> logging.Logger:
    """
    Configure a stdout logger once and return it.

    Calling it again for the same name returns the existing logger without
    adding a second handler.

    Example:
        >>> logger = get_job_logger("sync-abc", setup_logger())
        >>> logger.info("Publishing batch received")
        2026-03-01 10:30:45 | INFO | crosspost_worker | [sync-abc] Publishing batch received
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)
    logger.propagate = False

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        logger.addHandler(handler)

    return logger


def get_job_logger(
    trace_id: str,
    base_logger: Optional[logging.Logger] = None
) -> logging.LoggerAdapter:
    """Logger adapter that stamps every line with trace_id."""
    if base_logger is None:
        base_logger = logging.getLogger(DEFAULT_LOGGER)
    return logging.LoggerAdapter(base_logger, {"trace_id": trace_id})


def log_batch_summary(logger: logging.LoggerAdapter, summary: Dict[str, Any]) -> None:
    """One line per outcome of a queue batch (completed, retry, archived, deleted)."""
    logger.info(f"Total: {summary.get('total', 0)}")
    for outcome in ("completed", "retry", "archived", "deleted"):
        logger.info(f"{outcome.capitalize()}: {summary.get(outcome, 0)}")
