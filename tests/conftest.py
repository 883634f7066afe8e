from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pytest

from infra.capabilities import (
    AbortHandle,
    Availability,
    Capabilities,
    LanguageDetector,
    LanguageModel,
    PromptSession,
    Translator,
    TranslatorSession,
)
from infra.models import DetectionCandidate, ImageBlob
from infra.settings import LocalStore


class _FakeTranslatorSession(TranslatorSession):
    def __init__(self, target: str, failing: Sequence[str] = (), fail_all: bool = False, gate: Optional[asyncio.Event] = None):
        self.target = target
        self.failing = set(failing)
        self.fail_all = fail_all
        self.gate = gate
        self.calls: List[str] = []

    async def translate(self, text: str) -> str:
        self.calls.append(text)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_all or text in self.failing:
            raise RuntimeError("translation backend error")
        return f"[{self.target}] {text}"


class _FakeTranslator(Translator):
    def __init__(
        self,
        availability: Any = Availability.READILY,
        failing: Sequence[str] = (),
        fail_all: bool = False,
        gate: Optional[asyncio.Event] = None,
    ):
        self._availability = availability
        self.failing = failing
        self.fail_all = fail_all
        self.gate = gate
        self.availability_calls = 0
        self.sessions: List[_FakeTranslatorSession] = []

    async def availability(self, source: str, target: str) -> Any:
        self.availability_calls += 1
        return self._availability

    async def create(self, source: str, target: str) -> _FakeTranslatorSession:
        session = _FakeTranslatorSession(target, self.failing, self.fail_all, self.gate)
        self.sessions.append(session)
        return session

    @property
    def translate_calls(self) -> int:
        return sum(len(s.calls) for s in self.sessions)


class _FakeDetector(LanguageDetector):
    def __init__(self, candidates: Sequence[Any] = (), error: Optional[Exception] = None):
        self.candidates = list(candidates)
        self.error = error
        self.inputs: List[str] = []

    async def detect(self, text: str) -> List[DetectionCandidate]:
        self.inputs.append(text)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


class _FakePromptSession(PromptSession):
    def __init__(self, responses: Sequence[Any]):
        self.responses = list(responses)
        self.messages: List[Sequence[Dict[str, Any]]] = []
        self.started = asyncio.Event()

    async def prompt(self, messages, *, signal: Optional[AbortHandle] = None) -> str:
        self.messages.append(messages)
        self.started.set()
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, asyncio.Event):
            await response.wait()
            return "{}"
        if isinstance(response, Exception):
            raise response
        return response


class _FakeLanguageModel(LanguageModel):
    def __init__(self, responses: Sequence[Any] = ("",), availability: Any = Availability.READILY):
        self._availability = availability
        self.session = _FakePromptSession(responses)
        self.create_calls: List[Dict[str, Any]] = []

    async def availability(self) -> Any:
        return self._availability

    async def create(self, *, signal=None, expected_inputs=None, expected_outputs=None) -> _FakePromptSession:
        self.create_calls.append({"inputs": expected_inputs, "outputs": expected_outputs})
        return self.session


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(path=str(tmp_path / "store.json"))


@pytest.fixture
def image() -> ImageBlob:
    return ImageBlob(data=b"\xff\xd8\xff\xe0fake-jpeg", mime_type="image/jpeg")


def make_capabilities(
    translator: Optional[Translator] = None,
    detector: Optional[LanguageDetector] = None,
    language_model: Optional[LanguageModel] = None,
) -> Capabilities:
    return Capabilities(detector=detector, translator=translator, language_model=language_model)
