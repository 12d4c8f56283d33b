"""
Utility modules for the faynosync CLI.

- logging: console/JSON logging setup and level parsing
- config: settings file storage and environment resolution
"""

from faynosync.utils.logging import get_logger, log_function_call

__all__ = ["get_logger", "log_function_call"]
