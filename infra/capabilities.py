# -*- coding: utf-8 -*-
"""
Contracts for the external AI capabilities: language detection, translation
and a multimodal prompt model. Every call is asynchronous and follows the
availability check -> session create -> invoke pattern.
"""
from __future__ import annotations

import abc
import asyncio
from enum import Enum
from typing import Any, Awaitable, Dict, List, Optional, Sequence, TypeVar, Union

from infra.models import DetectionCandidate

T_co = TypeVar("T_co")

Message = Dict[str, Any]
ExpectedIO = List[Dict[str, Any]]


class Availability(str, Enum):
    READILY = "readily"
    AVAILABLE = "available"
    AFTER_DOWNLOAD = "after-download"
    DOWNLOADABLE = "downloadable"
    DOWNLOADING = "downloading"
    UNAVAILABLE = "unavailable"


_USABLE = {Availability.READILY.value, Availability.AVAILABLE.value}


def is_usable(value: Union[Availability, str, None]) -> bool:
    """Only 'readily' / 'available' mean the capability can be used right now."""
    if isinstance(value, Availability):
        return value.value in _USABLE
    return isinstance(value, str) and value in _USABLE


# ============================== CANCELLATION ==============================

class AbortError(Exception):
    """Raised by :meth:`AbortHandle.guard` when the handle is aborted."""


class AbortHandle:
    """
    Cooperative cancellation token for a single AI operation.

    ``abort()`` must be called from the thread running the event loop
    (use ``loop.call_soon_threadsafe`` from elsewhere).
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = "cancelled by user") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_aborted(self) -> None:
        if self._event.is_set():
            raise AbortError(self.reason or "aborted")

    async def guard(self, awaitable: Awaitable[T_co]) -> T_co:
        """Await ``awaitable`` unless the handle is aborted first."""
        self.raise_if_aborted()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise
        if task in done:
            waiter.cancel()
            return task.result()
        task.cancel()
        raise AbortError(self.reason or "aborted")


# ============================== INTERFACES ================================

class LanguageDetector(abc.ABC):
    @abc.abstractmethod
    async def detect(self, text: str) -> List[DetectionCandidate]:
        """Candidates ordered by decreasing confidence."""


class TranslatorSession(abc.ABC):
    @abc.abstractmethod
    async def translate(self, text: str) -> str:
        ...


class Translator(abc.ABC):
    @abc.abstractmethod
    async def availability(self, source: str, target: str) -> Union[Availability, str]:
        ...

    @abc.abstractmethod
    async def create(self, source: str, target: str) -> TranslatorSession:
        ...


class PromptSession(abc.ABC):
    @abc.abstractmethod
    async def prompt(self, messages: Sequence[Message], *, signal: Optional[AbortHandle] = None) -> str:
        """
        ``messages`` follow ``{"role": "user", "content": [part, ...]}`` where a
        part is ``{"type": "text", "value": str}`` or
        ``{"type": "image", "value": ImageBlob}``.
        """


class LanguageModel(abc.ABC):
    @abc.abstractmethod
    async def availability(self) -> Union[Availability, str]:
        ...

    @abc.abstractmethod
    async def create(
        self,
        *,
        signal: Optional[AbortHandle] = None,
        expected_inputs: Optional[ExpectedIO] = None,
        expected_outputs: Optional[ExpectedIO] = None,
    ) -> PromptSession:
        ...


class Capabilities:
    """Bundle of the capabilities the host offers. ``None`` means absent."""

    def __init__(
        self,
        detector: Optional[LanguageDetector] = None,
        translator: Optional[Translator] = None,
        language_model: Optional[LanguageModel] = None,
    ) -> None:
        self.detector = detector
        self.translator = translator
        self.language_model = language_model

    @classmethod
    def none(cls) -> "Capabilities":
        return cls()

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return "Capabilities(detector={}, translator={}, language_model={})".format(
            type(self.detector).__name__ if self.detector else None,
            type(self.translator).__name__ if self.translator else None,
            type(self.language_model).__name__ if self.language_model else None,
        )


__all__ = [
    "AbortError",
    "AbortHandle",
    "Availability",
    "Capabilities",
    "LanguageDetector",
    "LanguageModel",
    "Message",
    "PromptSession",
    "Translator",
    "TranslatorSession",
    "is_usable",
]
