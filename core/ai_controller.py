# -*- coding: utf-8 -*-
"""
AI operation controller: gates the language-model capability and tracks the
Idle/Running/Succeeded/Failed/Cancelled lifecycle of face analysis and
advice generation.
"""
from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.catalog import Hairstyle
from core.errors import (
    AIOperationError,
    AdvisorError,
    CapabilityUnavailableError,
    OperationCancelledError,
    RetryLimitReachedError,
)
from core.face_analysis import (
    build_advice_messages,
    build_face_analysis_messages,
    mock_advice,
    mock_face_analysis,
    process_advice,
    process_face_analysis,
)
from infra.capabilities import AbortError, AbortHandle, Capabilities, is_usable
from infra.config import DEFAULT_LANGUAGE, MAX_RETRY_ATTEMPTS
from infra.models import AdviceResult, FaceAnalysisResult, ImageBlob

logger = logging.getLogger(__name__)


class OperationKind(str, Enum):
    FACE_ANALYSIS = "face-analysis"
    ADVICE_GENERATION = "advice-generation"


class OperationStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class CapabilityStatus(str, Enum):
    CHECKING = "checking"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class InvalidTransitionError(RuntimeError):
    pass


class OperationState:
    """State machine of one operation kind. Transitions raise on misuse."""

    def __init__(self, kind: OperationKind, max_retries: int = MAX_RETRY_ATTEMPTS) -> None:
        self.kind = kind
        self.max_retries = max_retries
        self.status = OperationStatus.IDLE
        self.result: Any = None
        self.error: Optional[AdvisorError] = None
        self.retry_count = 0
        self.abort_handle: Optional[AbortHandle] = None
        self.failed_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self.status is OperationStatus.RUNNING

    @property
    def can_retry(self) -> bool:
        return self.status is OperationStatus.FAILED and self.retry_count < self.max_retries

    @property
    def can_skip(self) -> bool:
        return self.status is OperationStatus.FAILED

    def _require(self, *allowed: OperationStatus) -> None:
        if self.status not in allowed:
            raise InvalidTransitionError(f"{self.kind.value}: cannot leave {self.status.value} this way")

    def start(self) -> AbortHandle:
        if self.status is OperationStatus.RUNNING:
            raise InvalidTransitionError(f"{self.kind.value} is already running")
        if self.status is OperationStatus.FAILED and self.retry_count >= self.max_retries:
            raise RetryLimitReachedError(
                f"{self.kind.value} failed {self.retry_count} times; skip or clear the error"
            )
        self.status = OperationStatus.RUNNING
        self.error = None
        self.result = None
        self.failed_at = None
        self.abort_handle = AbortHandle()
        return self.abort_handle

    def succeed(self, result: Any) -> None:
        self._require(OperationStatus.RUNNING)
        self.status = OperationStatus.SUCCEEDED
        self.result = result
        self.abort_handle = None

    def fail(self, error: AdvisorError) -> None:
        self._require(OperationStatus.RUNNING)
        self.status = OperationStatus.FAILED
        self.error = error
        if error.retryable:
            self.retry_count += 1
        self.failed_at = time.monotonic()
        self.abort_handle = None

    def cancel(self) -> None:
        self._require(OperationStatus.RUNNING)
        self.status = OperationStatus.CANCELLED
        self.error = OperationCancelledError()
        self.abort_handle = None

    def skip(self, mock_result: Any) -> None:
        self._require(OperationStatus.FAILED)
        self.status = OperationStatus.SUCCEEDED
        self.result = mock_result
        self.error = None

    def clear_error(self) -> None:
        self.error = None
        self.retry_count = 0
        self.failed_at = None
        if self.status is OperationStatus.FAILED:
            self.status = OperationStatus.IDLE

    def snapshot(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "status": self.status.value,
            "error": self.error.to_dict() if self.error else None,
            "retry_count": self.retry_count,
            "can_retry": self.can_retry,
            "can_skip": self.can_skip,
        }


Listener = Callable[[OperationKind, OperationState], None]


class AIController:
    def __init__(
        self,
        capabilities: Optional[Capabilities] = None,
        language: Optional[Callable[[], str]] = None,
        max_retries: int = MAX_RETRY_ATTEMPTS,
    ) -> None:
        self._capabilities = capabilities or Capabilities.none()
        self._language = language or (lambda: DEFAULT_LANGUAGE)
        self.capability_status = CapabilityStatus.CHECKING
        self.face_analysis = OperationState(OperationKind.FACE_ANALYSIS, max_retries)
        self.advice_generation = OperationState(OperationKind.ADVICE_GENERATION, max_retries)
        self._listeners: List[Listener] = []

    def state(self, kind: OperationKind) -> OperationState:
        if kind is OperationKind.FACE_ANALYSIS:
            return self.face_analysis
        return self.advice_generation

    def _states(self, kind: Optional[OperationKind]) -> List[OperationState]:
        if kind is None:
            return [self.face_analysis, self.advice_generation]
        return [self.state(kind)]

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _notify(self, state: OperationState) -> None:
        for callback in tuple(self._listeners):
            try:
                callback(state.kind, state)
            except Exception:
                logger.exception("AI state listener %r failed", callback)

    # ---- Capability --------------------------------------------------------

    async def check_capability(self) -> bool:
        model = self._capabilities.language_model
        if model is None:
            self.capability_status = CapabilityStatus.UNAVAILABLE
            return False
        try:
            availability = await model.availability()
        except Exception as exc:
            logger.warning("AI availability check failed: %s", exc)
            self.capability_status = CapabilityStatus.UNAVAILABLE
            return False
        ok = is_usable(availability)
        logger.debug("AI availability: %s", getattr(availability, "value", availability))
        self.capability_status = CapabilityStatus.AVAILABLE if ok else CapabilityStatus.UNAVAILABLE
        return ok

    # ---- Operations --------------------------------------------------------

    async def run_face_analysis(self, image: ImageBlob) -> FaceAnalysisResult:
        return await self._run(
            self.face_analysis,
            with_image=True,
            build_messages=lambda language: build_face_analysis_messages(image, language),
            process=process_face_analysis,
        )

    async def run_advice_generation(self, face_analysis: FaceAnalysisResult, hairstyle: Hairstyle) -> AdviceResult:
        if face_analysis is None or hairstyle is None:
            raise ValueError("Advice needs a face analysis and a selected hairstyle")
        return await self._run(
            self.advice_generation,
            with_image=False,
            build_messages=lambda language: build_advice_messages(face_analysis, hairstyle, language),
            process=process_advice,
        )

    async def _run(
        self,
        state: OperationState,
        *,
        with_image: bool,
        build_messages: Callable[[str], List[Dict[str, Any]]],
        process: Callable[[str], Any],
    ) -> Any:
        handle = state.start()
        self._notify(state)
        language = self._language() or DEFAULT_LANGUAGE
        try:
            if not await handle.guard(self.check_capability()):
                raise CapabilityUnavailableError("On-device AI model is not available")

            text_io = {"type": "text", "languages": [language]}
            inputs = [text_io, {"type": "image"}] if with_image else [text_io]
            session = await handle.guard(
                self._capabilities.language_model.create(
                    signal=handle,
                    expected_inputs=inputs,
                    expected_outputs=[dict(text_io)],
                )
            )
            raw = await handle.guard(session.prompt(build_messages(language), signal=handle))
            result = process(raw)
        except Exception as exc:
            if handle.aborted or isinstance(exc, AbortError):
                logger.info("%s cancelled by user", state.kind.value)
                state.cancel()
                raise OperationCancelledError() from None
            error = exc if isinstance(exc, AdvisorError) else AIOperationError(f"AI operation failed: {exc}")
            logger.warning("%s failed (%s): %s", state.kind.value, error.kind, error.message)
            state.fail(error)
            if error is exc:
                raise
            raise error from exc
        else:
            state.succeed(result)
            return result
        finally:
            if state.status is OperationStatus.RUNNING:
                # task cancellation or interpreter shutdown bypassed the handlers above
                state.cancel()
            self._notify(state)

    def cancel_operation(self, kind: Optional[OperationKind] = None) -> bool:
        """Aborts the in-flight call(s); must run on the event loop thread."""
        aborted = False
        for state in self._states(kind):
            if state.is_running and state.abort_handle is not None:
                state.abort_handle.abort()
                aborted = True
        return aborted

    def clear_error(self, kind: Optional[OperationKind] = None) -> None:
        for state in self._states(kind):
            state.clear_error()
            self._notify(state)

    # ---- Skip path ---------------------------------------------------------

    def skip_face_analysis(self) -> FaceAnalysisResult:
        result = mock_face_analysis()
        self.face_analysis.skip(result)
        self._notify(self.face_analysis)
        return result

    def skip_advice_generation(self, face_analysis: FaceAnalysisResult, hairstyle: Hairstyle) -> AdviceResult:
        result = mock_advice(face_analysis, hairstyle)
        self.advice_generation.skip(result)
        self._notify(self.advice_generation)
        return result


__all__ = [
    "AIController",
    "CapabilityStatus",
    "InvalidTransitionError",
    "OperationKind",
    "OperationState",
    "OperationStatus",
]
