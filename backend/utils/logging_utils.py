"""
Logging utilities for the Casa learning backend.
Console + file logging, and a decorator that times LLM agent calls.
"""
import logging
import os
import time
import functools
from pathlib import Path
from typing import Any, Callable, Optional


# Log directory (override with LEARNING_LOG_DIR, e.g. on read-only hosts)
LOGS_DIR = Path(os.getenv('LEARNING_LOG_DIR', Path(__file__).parent / "logs"))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

# Configure logging format
LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str, log_file: Optional[str] = None, level=logging.INFO) -> logging.Logger:
    """
    Set up a logger with both file and console handlers.

    Args:
        name: Logger name (typically agent or module name)
        log_file: Optional specific log file name. If None, uses 'learning.log'
        level: Logging level (default INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Avoid duplicate handlers if logger already exists
    if logger.handlers:
        return logger

    if log_file is None:
        log_file = "learning.log"
    file_handler = logging.FileHandler(LOGS_DIR / log_file)
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)

    return logger


# LLM agent logger (rule synthesis, error guidance)
agent_logger = setup_logger("Agent", "agents.log")


def log_agent_execution(agent_name: str, logger: Optional[logging.Logger] = None):
    """
    Log start/finish/failure and wall time of an agent call.

    Usage:
        @log_agent_execution("RuleSynthesis")
        def execute(self, corrections):
            ...

    Args:
        agent_name: Name of the agent being executed
        logger: Optional logger instance. If None, uses default agent_logger
    """
    if logger is None:
        logger = agent_logger

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger.info(f"Starting agent: {agent_name}")
            start_time = time.time()

            try:
                result = func(*args, **kwargs)

                execution_time = time.time() - start_time
                logger.info(f"Agent {agent_name} completed in {execution_time:.3f}s")

                return result

            except Exception as e:
                execution_time = time.time() - start_time
                logger.error(f"Agent {agent_name} failed after {execution_time:.3f}s: {str(e)}")
                raise

        return wrapper
    return decorator
