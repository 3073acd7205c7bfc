"""
Centralized Logging Configuration for OceanRay

Structured (JSON) or plain-text logging for propagation runs. Module
loggers live under the ``oceanray`` hierarchy, so configuring that one
logger covers the whole engine.

Records may carry simulation context through ``extra=``:
    run       name of the scenario or run (added by RunContextFilter)
    sim_time  simulation time of the event (seconds)
    target    flat index of the target concerned
"""

import logging
import sys
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

CONTEXT_FIELDS = ('run', 'sim_time', 'target')


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                log_data[key] = getattr(record, key)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


class RunContextFilter(logging.Filter):
    """Stamps every record passing a handler with the run name."""

    def __init__(self, run_name: str):
        super().__init__()
        self.run_name = run_name

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, 'run'):
            record.run = self.run_name
        return True


def setup_logging(
    service_name: str = "oceanray",
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    json_format: bool = True,
    run_name: Optional[str] = None,
) -> logging.Logger:
    """
    Set up logging for a propagation run

    Args:
        service_name: Logger to configure; "oceanray" covers every engine module
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path (None for stdout only)
        json_format: JSON records (True) or one line of text each (False)
        run_name: Scenario name stamped on every record

    Returns:
        Configured logger instance
    """
    level = getattr(logging, log_level.upper())
    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    logger.handlers.clear()

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        if run_name:
            handler.addFilter(RunContextFilter(run_name))
        logger.addHandler(handler)

    return logger
