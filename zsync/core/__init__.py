"""Core types shared by every layer."""

from .config import DEFAULT_COMMIT_MESSAGE, ConfigError, SyncOptions, load_options
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "DEFAULT_COMMIT_MESSAGE",
    "ConfigError",
    "SyncOptions",
    "load_options",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
