"""Test helper utilities for listing notifier tests."""

from .fakes import (
    FailingTransport,
    InMemoryAuditLog,
    InMemoryUserDirectory,
    RecordingTransport,
    env_provider,
)

__all__ = [
    "FailingTransport",
    "InMemoryAuditLog",
    "InMemoryUserDirectory",
    "RecordingTransport",
    "env_provider",
]
