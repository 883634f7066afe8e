# -*- coding: utf-8 -*-
"""
Prompt construction and response processing for face analysis and advice,
plus the deterministic demo results used when the AI step is skipped.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List

from pydantic import ValidationError

from core.catalog import Hairstyle, describe_face_shape
from core.errors import NoFaceDetectedError, ResponseFormatError
from infra.config import ADVICE_PROMPT_PATH, FACE_ANALYSIS_PROMPT_PATH
from infra.localization import language_name
from infra.models import (
    AdviceResult,
    FaceAnalysisPayload,
    FaceAnalysisResult,
    FaceFeatures,
    ImageBlob,
    extract_json_object,
)

AI_NOTE = "Generated by the AI model"
MOCK_NOTE = "AI unavailable - demo data"

_TEMPLATE_FIELD_RE = re.compile(r"\{(\w+)\}")


def _load_prompt(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def _render(template: str, **values: Any) -> str:
    # JSON examples in the templates keep their braces; only known names are replaced.
    return _TEMPLATE_FIELD_RE.sub(
        lambda m: str(values[m.group(1)]) if m.group(1) in values else m.group(0),
        template,
    )


# ============================== PROMPTS ===================================

def build_face_analysis_messages(
    image: ImageBlob,
    language: str,
    prompt_path: str = FACE_ANALYSIS_PROMPT_PATH,
) -> List[Dict[str, Any]]:
    text = _render(_load_prompt(prompt_path), language=language_name(language))
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "value": text},
                {"type": "image", "value": image},
            ],
        }
    ]


def build_advice_messages(
    face_analysis: FaceAnalysisResult,
    hairstyle: Hairstyle,
    language: str,
    prompt_path: str = ADVICE_PROMPT_PATH,
) -> List[Dict[str, Any]]:
    text = _render(
        _load_prompt(prompt_path),
        faceShape=face_analysis.face_shape,
        hairstyle=hairstyle.name,
        description=hairstyle.description,
        language=language_name(language),
    )
    return [{"role": "user", "content": [{"type": "text", "value": text}]}]


# ============================== RESPONSES =================================

def _normalize_confidence(value: Any) -> str:
    if value is None or value == "":
        return FaceAnalysisResult.model_fields["confidence"].default
    if isinstance(value, bool):
        return FaceAnalysisResult.model_fields["confidence"].default
    if isinstance(value, (int, float)):
        number = float(value) * 100 if 0 < float(value) <= 1 else float(value)
        return "{:g}%".format(round(number, 1))
    return str(value).strip()


def process_face_analysis(response_text: str) -> FaceAnalysisResult:
    """
    Turns the raw model answer into a normalized result.

    Raises NoFaceDetectedError when the model reports ``{"error": ...}`` and
    ResponseFormatError when no usable JSON object is present.
    """
    data = extract_json_object(response_text)
    if data is None:
        raise ResponseFormatError(f"AI response format error: {_preview(response_text)}")
    try:
        payload = FaceAnalysisPayload.model_validate(data)
    except ValidationError as exc:
        raise ResponseFormatError(f"AI response format error: {exc.error_count()} invalid field(s)") from exc

    if payload.error:
        raise NoFaceDetectedError(payload.error)
    if not payload.face_shape:
        raise ResponseFormatError(f"AI response has no faceShape: {_preview(response_text)}")

    defaults = FaceFeatures()
    features = payload.features
    confidence = payload.confidence
    if confidence is None and features is not None:
        confidence = features.confidence
    face_shape = payload.face_shape.strip()
    return FaceAnalysisResult(
        face_shape=face_shape,
        confidence=_normalize_confidence(confidence),
        features=FaceFeatures(
            symmetry=(features.symmetry if features and features.symmetry else defaults.symmetry),
            proportions=(features.proportions if features and features.proportions else defaults.proportions),
        ),
        description=describe_face_shape(face_shape),
        is_mock=False,
        note=AI_NOTE,
        face_detected=True,
    )


def process_advice(response_text: str) -> AdviceResult:
    text = (response_text or "").strip()
    if not text:
        raise ResponseFormatError("AI returned an empty recommendation")
    return AdviceResult(text=text, is_mock=False, note=AI_NOTE)


def _preview(text: Any, limit: int = 120) -> str:
    value = str(text or "").strip().replace("\n", " ")
    return value if len(value) <= limit else value[:limit] + "..."


# ============================== DEMO DATA =================================

def mock_face_analysis() -> FaceAnalysisResult:
    return FaceAnalysisResult(
        face_shape="Oval",
        confidence="85%",
        features=FaceFeatures(symmetry="Good", proportions="Standard"),
        description=describe_face_shape("Oval"),
        is_mock=True,
        note=MOCK_NOTE,
        face_detected=True,
    )


_MOCK_ADVICE = {
    "Oval": "Your {shape} face shape is well balanced, and the {name} shows it off perfectly. {description} Regular trims keep the layers defined.",
    "Round": "The {name} visually lengthens your {shape} face. {description} A side part adds extra height and dimension.",
    "Square": "The {name} softens the contours of your {shape} face. {description} Keep some volume around the jaw line.",
    "Heart": "The {name} suits your {shape} face and balances a wider forehead with a narrower chin. {description}",
    "Long": "Your {shape} face works well with the {name}; keep width at the sides to add fullness. {description}",
}


def mock_advice(face_analysis: FaceAnalysisResult, hairstyle: Hairstyle) -> AdviceResult:
    template = _MOCK_ADVICE.get(
        face_analysis.face_shape,
        "The {name} is a good match for your {shape} face. {description} Ask a professional stylist for more tailored advice.",
    )
    text = template.format(
        shape=face_analysis.face_shape,
        name=hairstyle.name,
        description=hairstyle.description,
    )
    return AdviceResult(text=text, is_mock=True, note=MOCK_NOTE)


__all__ = [
    "AI_NOTE",
    "MOCK_NOTE",
    "build_advice_messages",
    "build_face_analysis_messages",
    "mock_advice",
    "mock_face_analysis",
    "process_advice",
    "process_face_analysis",
]
