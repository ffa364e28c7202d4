"""
Logging Module

Structured logging setup shared by services using reqsign_core.
"""

from .structured import (
    setup_logging,
    add_service_name,
    redact_secrets,
    service_name_var,
)

__all__ = [
    "setup_logging",
    "add_service_name",
    "redact_secrets",
    "service_name_var",
]
