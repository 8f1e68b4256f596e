"""
Configuration management.
"""

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from core.comp_sync.models import CompType


@dataclass
class Config:
    """
    Client configuration.

    Loads from environment variables with sensible defaults.
    """

    # Remote evaluation API
    api_base_url: str = field(
        default_factory=lambda: os.getenv("COMP_API_URL", "http://127.0.0.1:8000/v1")
    )
    session_key: str = field(default_factory=lambda: os.getenv("COMP_SESSION_KEY", ""))
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "20"))
    )

    # Synchronization engine
    sale_debounce_seconds: float = field(
        default_factory=lambda: float(os.getenv("SALE_DEBOUNCE_SECONDS", "0.5"))
    )
    rent_debounce_seconds: float = field(
        default_factory=lambda: float(os.getenv("RENT_DEBOUNCE_SECONDS", "0.3"))
    )
    error_auto_clear_seconds: float = field(
        default_factory=lambda: float(os.getenv("ERROR_AUTO_CLEAR_SECONDS", "8"))
    )

    # Local device storage
    preferences_path: str = field(
        default_factory=lambda: os.getenv("PREFERENCES_PATH", "./data/preferences.json")
    )

    # Development stub server
    host: str = field(default_factory=lambda: os.getenv("HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from environment."""
        return cls()

    def debounce_seconds(self, comp_type: "CompType") -> float:
        """Quiet period for filter edits of the given comp type."""
        from core.comp_sync.models import CompType

        if comp_type is CompType.RENT:
            return self.rent_debounce_seconds
        return self.sale_debounce_seconds

    def to_dict(self) -> dict:
        """Convert config to dictionary (session key redacted)."""
        return {
            "api_base_url": self.api_base_url,
            "session_key": "***" if self.session_key else "",
            "request_timeout": self.request_timeout,
            "sale_debounce_seconds": self.sale_debounce_seconds,
            "rent_debounce_seconds": self.rent_debounce_seconds,
            "error_auto_clear_seconds": self.error_auto_clear_seconds,
            "preferences_path": self.preferences_path,
            "host": self.host,
            "port": self.port,
            "debug": self.debug,
            "log_level": self.log_level,
        }
