"""
Services Package

External collaborators: the remote state document store and the host runtime.
"""

from finflow.services.host import (
    HostBridge,
    InitDataError,
    NullHostBridge,
    TelegramHostBridge,
    validate_init_data,
)

__all__ = [
    "HostBridge",
    "InitDataError",
    "NullHostBridge",
    "TelegramHostBridge",
    "validate_init_data",
]
