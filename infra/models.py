# -*- coding: utf-8 -*-
"""
infra/models.py: Pydantic models for languages, AI results and history records,
plus helpers that pull a JSON object out of free-form model output.
"""

from __future__ import annotations

import base64
import json
import mimetypes
import os
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================== LANGUAGES ===============================

class Language(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    name: str
    native_name: str


class DetectionCandidate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    language: str
    confidence: float = 0.0


# =============================== IMAGES ==================================

class ImageBlob(BaseModel):
    """Raw image bytes as handed over by the capture/compression step."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str = "image/jpeg"

    @classmethod
    def from_path(cls, path: str) -> "ImageBlob":
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Image not found: {path}")
        mime, _ = mimetypes.guess_type(path)
        with open(path, "rb") as f:
            data = f.read()
        return cls(data=data, mime_type=mime or "image/jpeg")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


# ============================ FACE ANALYSIS ==============================

class FaceFeaturesPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    symmetry: Optional[str] = None
    proportions: Optional[str] = None
    confidence: Optional[Union[str, float]] = None


class FaceAnalysisPayload(BaseModel):
    """
    Shape of the JSON object requested from the model:
      {"faceShape": "...", "confidence": "90%",
       "features": {"symmetry": "...", "proportions": "..."}}
    or {"error": "..."} when no face is visible.
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    face_shape: Optional[str] = Field(default=None, alias="faceShape")
    confidence: Optional[Union[str, float]] = None
    features: Optional[FaceFeaturesPayload] = None
    error: Optional[str] = None

    @field_validator("face_shape", "error", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class FaceFeatures(BaseModel):
    symmetry: str = "Good"
    proportions: str = "Standard"


class FaceAnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    face_shape: str = Field(alias="faceShape")
    confidence: str = "85%"
    features: FaceFeatures = Field(default_factory=FaceFeatures)
    description: str = ""
    is_mock: bool = Field(default=False, alias="isMock")
    note: str = ""
    face_detected: bool = Field(default=True, alias="faceDetected")


# ================================ ADVICE =================================

ADVICE_SECTIONS = ("reason", "maintenance", "styling", "makeup", "caution")

_SECTION_KEYWORDS = {
    "reason": ("why", "reason", "suit"),
    "maintenance": ("maintenance", "care", "daily"),
    "styling": ("styling", "style tip", "product"),
    "makeup": ("makeup", "outfit", "match"),
    "caution": ("caution", "note", "avoid", "attention"),
}


class AdviceResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    is_mock: bool = Field(default=False, alias="isMock")
    note: str = ""

    def sections(self) -> Dict[str, str]:
        """Split the advice into sections by heading keywords; untitled text goes to 'reason'."""
        sections = {name: "" for name in ADVICE_SECTIONS}
        current = "reason"
        for line in self.text.splitlines():
            if not line.strip():
                continue
            lowered = line.lower()
            if len(lowered) <= 40 and not lowered.rstrip().endswith((".", "!", "?")):
                for name, words in _SECTION_KEYWORDS.items():
                    if any(word in lowered for word in words):
                        current = name
                        break
            sections[current] += line.strip() + "\n"
        return {name: body.strip() for name, body in sections.items()}


# ================================ HISTORY ================================

class HistoryRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    timestamp: str = Field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    face_shape: str = Field(alias="faceShape")
    hairstyle_name: str = Field(alias="hairstyleName")
    recommendation_text: str = Field(alias="recommendationText")


# ======================== CLEANUP AND EXTRACTION =========================

_CODE_FENCE_RE = re.compile(
    r"^\s*```[a-zA-Z0-9_-]*\s*([\s\S]*?)\s*```\s*$",
    re.MULTILINE,
)


def _strip_markdown_code_fences(text: str) -> str:
    """
    Removes a ```json ... ``` / ``` ... ``` wrapper if present.
    Returns the stripped text otherwise.
    """
    m = _CODE_FENCE_RE.match(text.strip())
    return m.group(1).strip() if m else text.strip()


def _first_balanced(text: str, opener: str, closer: str) -> Optional[Any]:
    """
    Scans for the first balanced opener..closer span that parses as JSON.
    Strings are tracked so braces inside quoted values do not break the balance.
    """
    start = text.find(opener)
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == opener:
                depth += 1
            elif ch == closer:
                depth -= 1
                if depth == 0:
                    try:
                        return json.loads(text[start:i + 1])
                    except ValueError:
                        break
        start = text.find(opener, start + 1)
    return None


def extract_json_object(model_output_text: str) -> Optional[Dict[str, Any]]:
    """
    Returns the first JSON object found in the model output, or None.
    1) strips Markdown code fences
    2) fast path for text that is already a JSON object
    3) otherwise cuts the first balanced {...}
    """
    if not isinstance(model_output_text, str):
        return None
    text = _strip_markdown_code_fences(model_output_text)
    if text.startswith("{") and text.endswith("}"):
        try:
            value = json.loads(text)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value
    value = _first_balanced(text, "{", "}")
    return value if isinstance(value, dict) else None


def extract_json_array(model_output_text: str) -> Optional[List[Any]]:
    """Same as :func:`extract_json_object` for a top-level JSON list."""
    if not isinstance(model_output_text, str):
        return None
    text = _strip_markdown_code_fences(model_output_text)
    value = _first_balanced(text, "[", "]")
    return value if isinstance(value, list) else None


__all__ = [
    "ADVICE_SECTIONS",
    "AdviceResult",
    "DetectionCandidate",
    "FaceAnalysisPayload",
    "FaceAnalysisResult",
    "FaceFeatures",
    "FaceFeaturesPayload",
    "HistoryRecord",
    "ImageBlob",
    "Language",
    "extract_json_array",
    "extract_json_object",
]
