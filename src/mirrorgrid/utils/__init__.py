"""Utility modules for mirrorgrid."""

from .io import load_data, save_data, load_config, save_config, load_model_document
from .log import setup_logging, get_logger

__all__ = [
    "load_data",
    "save_data",
    "load_config",
    "save_config",
    "load_model_document",
    "setup_logging",
    "get_logger",
]
