from __future__ import annotations

import asyncio

import pytest

from core.ai_controller import (
    AIController,
    CapabilityStatus,
    InvalidTransitionError,
    OperationKind,
    OperationState,
    OperationStatus,
)
from core.catalog import find_hairstyle
from core.errors import (
    AIOperationError,
    CapabilityUnavailableError,
    NoFaceDetectedError,
    OperationCancelledError,
    ResponseFormatError,
    RetryLimitReachedError,
)
from core.face_analysis import mock_face_analysis
from infra.capabilities import Availability
from infra.localization import LanguageManager
from tests.conftest import _FakeLanguageModel, _FakeTranslator, make_capabilities

ROUND_JSON = '{"faceShape": "Round", "confidence": "92%", "features": {"symmetry": "Good", "proportions": "Balanced"}}'


def _controller(model: _FakeLanguageModel, **kwargs) -> AIController:
    return AIController(make_capabilities(language_model=model), **kwargs)


async def _until_running(state: OperationState) -> None:
    for _ in range(20):
        if state.is_running:
            return
        await asyncio.sleep(0)


# ---- face analysis ----------------------------------------------------------

@pytest.mark.asyncio
async def test_face_analysis_success(image) -> None:
    model = _FakeLanguageModel([ROUND_JSON])
    controller = _controller(model, language=lambda: "fr")

    result = await controller.run_face_analysis(image)

    assert result.face_shape == "Round"
    assert result.confidence == "92%"
    assert result.features.proportions == "Balanced"
    assert result.is_mock is False
    assert controller.face_analysis.status is OperationStatus.SUCCEEDED
    assert controller.face_analysis.result == result
    assert controller.capability_status is CapabilityStatus.AVAILABLE

    created = model.create_calls[0]
    assert {"type": "image"} in created["inputs"]
    assert created["outputs"][0]["languages"] == ["fr"]
    parts = model.session.messages[0][0]["content"]
    assert parts[0]["type"] == "text" and "Français" in parts[0]["value"]
    assert parts[1] == {"type": "image", "value": image}


@pytest.mark.asyncio
async def test_face_analysis_fenced_json_with_defaults(image) -> None:
    model = _FakeLanguageModel(['Here you go:\n```json\n{"faceShape": "Heart", "confidence": 0.9}\n```'])
    result = await _controller(model).run_face_analysis(image)
    assert result.face_shape == "Heart"
    assert result.confidence == "90%"
    assert result.features.symmetry == "Good"
    assert result.features.proportions == "Standard"


@pytest.mark.asyncio
async def test_no_face_detected(image) -> None:
    model = _FakeLanguageModel(['{"error": "No face detected"}'])
    controller = _controller(model)

    with pytest.raises(NoFaceDetectedError) as info:
        await controller.run_face_analysis(image)

    assert info.value.message == "No face detected"
    state = controller.face_analysis
    assert state.status is OperationStatus.FAILED
    assert state.error is info.value
    assert state.error.user_actionable is True
    assert state.can_skip is True
    assert state.is_running is False


@pytest.mark.asyncio
async def test_capability_unavailable(image) -> None:
    model = _FakeLanguageModel([ROUND_JSON], availability=Availability.AFTER_DOWNLOAD)
    controller = _controller(model)

    with pytest.raises(CapabilityUnavailableError):
        await controller.run_face_analysis(image)

    state = controller.face_analysis
    assert state.status is OperationStatus.FAILED
    assert state.retry_count == 0
    assert state.is_running is False
    assert controller.capability_status is CapabilityStatus.UNAVAILABLE
    assert model.create_calls == []

    result = controller.skip_face_analysis()
    assert result.is_mock is True
    assert result.face_shape == "Oval"
    assert state.status is OperationStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_no_language_model_at_all(image) -> None:
    controller = AIController()
    with pytest.raises(CapabilityUnavailableError):
        await controller.run_face_analysis(image)
    assert await controller.check_capability() is False


@pytest.mark.asyncio
async def test_format_errors_count_retries_until_limit(image) -> None:
    model = _FakeLanguageModel(["I cannot see a JSON object here"])
    controller = _controller(model)
    state = controller.face_analysis

    for attempt in (1, 2):
        with pytest.raises(ResponseFormatError):
            await controller.run_face_analysis(image)
        assert state.retry_count == attempt
        assert state.can_retry is True
        assert state.is_running is False

    with pytest.raises(ResponseFormatError):
        await controller.run_face_analysis(image)
    assert state.retry_count == 3
    assert state.can_retry is False
    assert state.can_skip is True

    with pytest.raises(RetryLimitReachedError):
        await controller.run_face_analysis(image)
    assert state.status is OperationStatus.FAILED

    controller.clear_error(OperationKind.FACE_ANALYSIS)
    assert state.status is OperationStatus.IDLE
    assert state.retry_count == 0


@pytest.mark.asyncio
async def test_unexpected_exception_is_wrapped(image) -> None:
    model = _FakeLanguageModel([RuntimeError("model crashed")])
    controller = _controller(model)

    with pytest.raises(AIOperationError) as info:
        await controller.run_face_analysis(image)

    assert "model crashed" in info.value.message
    assert controller.face_analysis.retry_count == 1


@pytest.mark.asyncio
async def test_retry_after_failure_succeeds(image) -> None:
    model = _FakeLanguageModel(["not json", ROUND_JSON])
    controller = _controller(model)

    with pytest.raises(ResponseFormatError):
        await controller.run_face_analysis(image)
    result = await controller.run_face_analysis(image)

    assert result.face_shape == "Round"
    assert controller.face_analysis.status is OperationStatus.SUCCEEDED
    assert controller.face_analysis.error is None


# ---- cancellation -------------------------------------------------------------

@pytest.mark.asyncio
async def test_cancel_moves_to_cancelled_without_retry_increment(image) -> None:
    model = _FakeLanguageModel([asyncio.Event()])
    controller = _controller(model)

    task = asyncio.create_task(controller.run_face_analysis(image))
    await model.session.started.wait()
    assert controller.face_analysis.is_running is True

    assert controller.cancel_operation(OperationKind.FACE_ANALYSIS) is True
    with pytest.raises(OperationCancelledError):
        await task

    state = controller.face_analysis
    assert state.status is OperationStatus.CANCELLED
    assert state.retry_count == 0
    assert state.is_running is False
    assert state.can_skip is False
    assert controller.cancel_operation() is False


@pytest.mark.asyncio
async def test_cancel_does_not_touch_language_switch(store, image) -> None:
    gate = asyncio.Event()
    i18n = LanguageManager(store, make_capabilities(translator=_FakeTranslator(gate=gate)))
    model = _FakeLanguageModel([asyncio.Event()])
    controller = _controller(model, language=lambda: i18n.current_language)

    switch = asyncio.create_task(i18n.switch_language("fr"))
    analysis = asyncio.create_task(controller.run_face_analysis(image))
    await model.session.started.wait()

    controller.cancel_operation()
    with pytest.raises(OperationCancelledError):
        await analysis

    assert i18n.state.is_translating is True
    gate.set()
    state = await switch
    assert state.current_language == "fr"
    assert state.fallback_active is False


# ---- advice ---------------------------------------------------------------------

@pytest.mark.asyncio
async def test_advice_generation() -> None:
    model = _FakeLanguageModel(["Why It Suits You\nSoft layers balance the jaw.\n"])
    controller = _controller(model)
    face = mock_face_analysis()
    hairstyle = find_hairstyle(1)

    advice = await controller.run_advice_generation(face, hairstyle)

    assert advice.is_mock is False
    assert "Soft layers" in advice.text
    prompt = model.session.messages[0][0]["content"][0]["value"]
    assert "Oval" in prompt and "Bob" in prompt
    assert model.create_calls[0]["inputs"] == [{"type": "text", "languages": ["en"]}]


@pytest.mark.asyncio
async def test_advice_requires_inputs() -> None:
    controller = _controller(_FakeLanguageModel(["text"]))
    with pytest.raises(ValueError):
        await controller.run_advice_generation(None, find_hairstyle(1))
    assert controller.advice_generation.status is OperationStatus.IDLE


@pytest.mark.asyncio
async def test_empty_advice_is_a_format_error_and_skippable() -> None:
    controller = _controller(_FakeLanguageModel(["   "]))
    face = mock_face_analysis()
    hairstyle = find_hairstyle(4)

    with pytest.raises(ResponseFormatError):
        await controller.run_advice_generation(face, hairstyle)

    advice = controller.skip_advice_generation(face, hairstyle)
    assert advice.is_mock is True
    assert "Lob" in advice.text
    assert controller.advice_generation.status is OperationStatus.SUCCEEDED


# ---- state machine ----------------------------------------------------------------

def test_skip_only_from_failed() -> None:
    controller = AIController()
    with pytest.raises(InvalidTransitionError):
        controller.skip_face_analysis()


def test_operation_state_transitions() -> None:
    state = OperationState(OperationKind.ADVICE_GENERATION, max_retries=1)
    state.start()
    with pytest.raises(InvalidTransitionError):
        state.start()
    state.fail(ResponseFormatError("bad"))
    assert state.snapshot() == {
        "kind": "advice-generation",
        "status": "failed",
        "error": {"kind": "response-format", "message": "bad"},
        "retry_count": 1,
        "can_retry": False,
        "can_skip": True,
    }
    with pytest.raises(RetryLimitReachedError):
        state.start()


@pytest.mark.asyncio
async def test_listeners_observe_running_then_final(image) -> None:
    controller = _controller(_FakeLanguageModel([ROUND_JSON]))
    seen = []
    unsubscribe = controller.subscribe(lambda kind, state: seen.append((kind, state.status)))

    await controller.run_face_analysis(image)

    assert seen == [
        (OperationKind.FACE_ANALYSIS, OperationStatus.RUNNING),
        (OperationKind.FACE_ANALYSIS, OperationStatus.SUCCEEDED),
    ]
    unsubscribe()
    controller.clear_error()
    assert len(seen) == 2
