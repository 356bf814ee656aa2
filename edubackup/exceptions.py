# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
edubackup Exceptions - Custom exceptions for the edubackup package.
"""


class EduBackupError(Exception):
    """Base exception for all edubackup errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(EduBackupError):
    """Raised when configuration is invalid."""

    pass


class StorageUnavailableError(EduBackupError):
    """Raised when the document database or record store is unreachable."""

    pass


class BackupError(EduBackupError):
    """Raised when backup operations fail."""

    pass


class RestoreError(EduBackupError):
    """Raised when restore operations fail."""

    pass


class InvalidArtifactNameError(RestoreError):
    """Raised when a file name is not a valid snapshot artifact name."""

    pass


class RecordStoreError(EduBackupError):
    """Raised when backup record store operations fail."""

    pass
