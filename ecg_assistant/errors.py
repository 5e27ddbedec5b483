# -*- coding: utf-8 -*-
"""Error taxonomy shared by intake, pipeline and the analysis functions."""

from __future__ import annotations

from enum import Enum


class RejectReason(str, Enum):
    too_large = "too_large"
    unsupported_type = "unsupported_type"
    unreadable = "unreadable"
    empty = "empty"


class IntakeValidationError(ValueError):
    """Client-side validation failure; never reaches the remote tier."""

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.fields = list(fields or [])


class FileRejected(IntakeValidationError):
    def __init__(self, reason: RejectReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class RemoteCallError(RuntimeError):
    """Transport failure or non-2xx answer from a remote call."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class MalformedResponseError(RemoteCallError):
    """The remote answered, but no usable JSON could be extracted."""


class ServiceNotConfigured(RemoteCallError):
    """The AI credential is missing on the server side."""

    code = "not_configured"


class SubmissionInFlight(RuntimeError):
    """A session already has a pipeline run awaiting a remote answer."""
