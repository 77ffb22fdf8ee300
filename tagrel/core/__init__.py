"""Core types shared by every stage: results, config, exit codes."""

from .config import PipelineConfig, ConfigError, load_config
from .errors import ExitCode
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "PipelineConfig",
    "ConfigError",
    "load_config",
    # errors
    "ExitCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
