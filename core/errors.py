# -*- coding: utf-8 -*-
"""Error taxonomy surfaced by AI operations to the front ends."""
from __future__ import annotations

from typing import Dict


class AdvisorError(Exception):
    """Base class; front ends display ``to_dict()`` as ``{kind, message}``."""

    kind = "error"
    retryable = True
    user_actionable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class CapabilityUnavailableError(AdvisorError):
    kind = "capability-unavailable"
    retryable = False


class NoFaceDetectedError(AdvisorError):
    kind = "no-face-detected"
    user_actionable = True


class ResponseFormatError(AdvisorError):
    kind = "response-format"


class AIOperationError(AdvisorError):
    """The capability raised something unexpected while prompting."""
    kind = "ai-failure"


class OperationCancelledError(AdvisorError):
    kind = "cancelled"
    retryable = False

    def __init__(self, message: str = "cancelled by user") -> None:
        super().__init__(message)


class RetryLimitReachedError(AdvisorError):
    kind = "retry-limit"
    retryable = False


__all__ = [
    "AIOperationError",
    "AdvisorError",
    "CapabilityUnavailableError",
    "NoFaceDetectedError",
    "OperationCancelledError",
    "ResponseFormatError",
    "RetryLimitReachedError",
]
