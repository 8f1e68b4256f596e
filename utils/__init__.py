"""
Utility modules for the comp sync client.
"""

from .formatting import format_currency, format_number, format_percent
from .config import Config
from .logging_config import configure_logging, get_logger
from .preferences import DevicePreferences

__all__ = [
    "format_currency",
    "format_number",
    "format_percent",
    "Config",
    "configure_logging",
    "get_logger",
    "DevicePreferences",
]
