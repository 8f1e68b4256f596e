"""
Remote comp service adapters.

Available services:
- HttpCompService: The remote evaluation API over HTTP
- InMemoryCompService: Development/testing with generated data
"""

from .base import BaseCompService
from .http import HttpCompService, criteria_headers
from .memory import InMemoryCompService, Subject

__all__ = [
    "BaseCompService",
    "HttpCompService",
    "criteria_headers",
    "InMemoryCompService",
    "Subject",
]
