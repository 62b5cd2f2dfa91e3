"""Core utilities for the Airwave backend."""

from .errors import (
    AuthError,
    ConfigurationError,
    DirectoryError,
    InputError,
    NotificationError,
    PermissionDegraded,
    PublishError,
    ThreadError,
)

__all__ = [
    "NotificationError",
    "InputError",
    "AuthError",
    "DirectoryError",
    "PermissionDegraded",
    "ThreadError",
    "PublishError",
    "ConfigurationError",
]
