from __future__ import annotations

import pytest

from infra.models import (
    AdviceResult,
    FaceAnalysisPayload,
    HistoryRecord,
    ImageBlob,
    extract_json_array,
    extract_json_object,
)


@pytest.mark.parametrize(
    "text",
    [
        '{"faceShape": "Oval"}',
        '```json\n{"faceShape": "Oval"}\n```',
        'Sure! Here is the analysis: {"faceShape": "Oval"} Hope it helps.',
    ],
)
def test_extract_json_object_variants(text: str) -> None:
    assert extract_json_object(text) == {"faceShape": "Oval"}


def test_extract_json_object_handles_braces_inside_strings() -> None:
    text = 'prefix {"note": "use {curly} braces", "nested": {"a": 1}} suffix'
    assert extract_json_object(text) == {"note": "use {curly} braces", "nested": {"a": 1}}


def test_extract_json_object_skips_broken_candidates() -> None:
    text = "{not json} then {\"ok\": true}"
    assert extract_json_object(text) == {"ok": True}


@pytest.mark.parametrize("text", ["no json here", "{broken", "[1, 2]", None, 42])
def test_extract_json_object_returns_none(text) -> None:
    assert extract_json_object(text) is None


def test_extract_json_array() -> None:
    raw = 'Result:\n[{"language": "fr", "confidence": 0.9}]'
    assert extract_json_array(raw) == [{"language": "fr", "confidence": 0.9}]
    assert extract_json_array("nothing") is None


def test_face_analysis_payload_blank_values() -> None:
    payload = FaceAnalysisPayload.model_validate({"faceShape": "  ", "error": "", "extra": 1})
    assert payload.face_shape is None
    assert payload.error is None


def test_advice_sections_split_by_headings() -> None:
    advice = AdviceResult(
        text=(
            "Why It Suits You\nThe bob frames your face.\n\n"
            "Maintenance Tips\nTrim every six weeks.\n"
            "Styling Suggestions\nUse a round brush.\n"
            "Makeup and Outfit\nSoft tones work well.\n"
            "Things to Note\nAvoid heavy products."
        )
    )
    sections = advice.sections()
    assert "The bob frames your face." in sections["reason"]
    assert "Trim every six weeks." in sections["maintenance"]
    assert "Use a round brush." in sections["styling"]
    assert "Soft tones work well." in sections["makeup"]
    assert "Avoid heavy products." in sections["caution"]


def test_advice_without_headings_stays_in_reason() -> None:
    advice = AdviceResult(text="A single paragraph of advice that has no headings at all.")
    sections = advice.sections()
    assert sections["reason"] == advice.text
    assert all(not sections[name] for name in ("maintenance", "styling", "makeup", "caution"))


def test_image_blob_from_path(tmp_path) -> None:
    path = tmp_path / "face.png"
    path.write_bytes(b"\x89PNG data")
    blob = ImageBlob.from_path(str(path))
    assert blob.mime_type == "image/png"
    assert blob.to_data_url().startswith("data:image/png;base64,")

    with pytest.raises(FileNotFoundError):
        ImageBlob.from_path(str(tmp_path / "missing.jpg"))


def test_history_record_aliases() -> None:
    record = HistoryRecord(face_shape="Round", hairstyle_name="Lob", recommendation_text="Nice.")
    dumped = record.model_dump(by_alias=True)
    assert dumped["faceShape"] == "Round"
    assert dumped["hairstyleName"] == "Lob"
    assert dumped["recommendationText"] == "Nice."
    assert dumped["timestamp"]
