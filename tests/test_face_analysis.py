from __future__ import annotations

import os

import pytest

import core.face_analysis
from core.catalog import (
    FACE_SHAPES,
    HAIRSTYLES,
    all_tags,
    by_tag,
    describe_face_shape,
    filter_hairstyles,
    find_hairstyle,
    recommended_for,
)
from core.errors import NoFaceDetectedError, ResponseFormatError
from core.face_analysis import (
    build_advice_messages,
    mock_advice,
    mock_face_analysis,
    process_advice,
    process_face_analysis,
)
from infra.config import ADVICE_PROMPT_PATH, FACE_ANALYSIS_PROMPT_PATH


def test_process_face_analysis_round() -> None:
    result = process_face_analysis(
        '{"faceShape": "Round", "confidence": "92%", "features": {"symmetry": "Very good", "proportions": "Balanced"}}'
    )
    assert result.face_shape == "Round"
    assert result.confidence == "92%"
    assert result.features.symmetry == "Very good"
    assert result.description == describe_face_shape("Round")
    assert result.is_mock is False
    assert result.face_detected is True


def test_confidence_read_from_features_and_normalized() -> None:
    result = process_face_analysis('{"faceShape": "Long", "features": {"confidence": 0.755}}')
    assert result.confidence == "75.5%"
    assert result.features.symmetry == "Good"


def test_missing_confidence_defaults() -> None:
    assert process_face_analysis('{"faceShape": "Square"}').confidence == "85%"


@pytest.mark.parametrize("text", ["", "plain prose", '{"confidence": "90%"}', '{"faceShape": ["Oval"]}'])
def test_unusable_answers_are_format_errors(text: str) -> None:
    with pytest.raises(ResponseFormatError):
        process_face_analysis(text)


def test_error_field_means_no_face() -> None:
    with pytest.raises(NoFaceDetectedError, match="too dark"):
        process_face_analysis('{"error": "Image too dark"}')


def test_unknown_face_shape_is_kept() -> None:
    result = process_face_analysis('{"faceShape": "Diamond"}')
    assert result.face_shape == "Diamond"
    assert result.description == "No specific facial features detected"
    assert recommended_for("Diamond") == []


def test_process_advice() -> None:
    assert process_advice("  Tips  ").text == "Tips"
    with pytest.raises(ResponseFormatError):
        process_advice("")


def test_mock_results_are_deterministic() -> None:
    face = mock_face_analysis()
    assert face == mock_face_analysis()
    assert (face.face_shape, face.confidence, face.is_mock) == ("Oval", "85%", True)

    bob = find_hairstyle(1)
    assert mock_advice(face, bob) == mock_advice(face, bob)
    assert "Bob" in mock_advice(face, bob).text


def test_advice_prompt_mentions_inputs() -> None:
    messages = build_advice_messages(mock_face_analysis(), find_hairstyle(3), "ja")
    text = messages[0]["content"][0]["value"]
    assert "Big Waves" in text
    assert "Oval" in text
    assert "日本語" in text


def test_catalog_lookups() -> None:
    assert len(HAIRSTYLES) == 8
    assert find_hairstyle(99) is None
    for shape in FACE_SHAPES:
        assert recommended_for(shape), shape
    assert all(h.difficulty in ("easy", "medium", "hard") for h in HAIRSTYLES)
    assert "curly" in all_tags()
    assert {h.name for h in by_tag("curly")} == {"Big Waves", "Vintage Curls"}
    assert [h.name for h in recommended_for("round")] == ["Big Waves", "Lob", "French Bangs", "Layered Long"]


def test_prompts_ship_inside_the_core_package() -> None:
    core_dir = os.path.dirname(os.path.abspath(core.face_analysis.__file__))
    for path in (FACE_ANALYSIS_PROMPT_PATH, ADVICE_PROMPT_PATH):
        assert os.path.isfile(path), path
        assert os.path.dirname(path) == os.path.join(core_dir, "prompts")


def test_filter_search_is_case_insensitive_over_name_description_and_tags() -> None:
    assert [h.name for h in filter_hairstyles(search="PIXIE")] == ["Pixie Cut"]
    assert [h.name for h in filter_hairstyles(search="  vintage ")] == ["Vintage Curls"]
    assert {h.name for h in filter_hairstyles(search="dimension")} == {"Big Waves", "Layered Long"}
    assert filter_hairstyles(search="mohawk") == []
    assert filter_hairstyles() == list(HAIRSTYLES)


def test_filter_requires_every_tag_and_exact_difficulty() -> None:
    assert [h.name for h in filter_hairstyles(tags=["curly", "bold"])] == ["Vintage Curls"]
    assert [h.name for h in filter_hairstyles(tags=["trendy"], difficulty="easy")] == ["Lob"]
    assert {h.name for h in filter_hairstyles(difficulty="hard")} == {"Pixie Cut", "Vintage Curls"}
    assert filter_hairstyles(tags=["curly"], difficulty="easy") == []


def test_filter_keeps_the_given_order() -> None:
    styles = filter_hairstyles(recommended_for("Round"), difficulty="medium")
    assert [h.name for h in styles] == ["Big Waves", "French Bangs", "Layered Long"]
