"""Shared configuration and logging used by the compiler and the CLI"""

from .config import config
from .logger import get_logger

__all__ = [
    "config",
    "get_logger",
]
