"""Logging configuration for the ML pipeline."""
import logging
import sys
from typing import Optional, Union


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Configure application logging.
    
    Args:
        level: Logging level, numeric or name such as "DEBUG" (default: INFO)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance.
    
    Args:
        name: Logger name (default: root logger)
        
    Returns:
        Logger instance
    """
    return logging.getLogger(name)
