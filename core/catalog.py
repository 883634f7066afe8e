# -*- coding: utf-8 -*-
"""Static hairstyle catalog with face-shape suitability tags."""
from __future__ import annotations

from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict

FACE_SHAPES = ("Oval", "Round", "Square", "Heart", "Long")
DIFFICULTIES = ("easy", "medium", "hard")

FACE_SHAPE_DESCRIPTIONS = {
    "Oval": "Standard face shape, suitable for almost all hairstyles",
    "Round": "Face length and width are similar, need to elongate face shape through hairstyle",
    "Square": "Obvious jaw angle, need to soften contours through hairstyle",
    "Heart": "Wider forehead, sharper chin, need to balance upper and lower proportions",
    "Long": "Face length is significantly greater than face width, need to increase width through hairstyle",
}


class Hairstyle(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: str
    suitable_face_shapes: tuple[str, ...]
    difficulty: str
    maintenance: str
    tags: tuple[str, ...]
    features: tuple[str, ...]


HAIRSTYLES: tuple[Hairstyle, ...] = (
    Hairstyle(
        id=1,
        name="Bob",
        description="Classic short cut between the ears and shoulders that suits many face shapes.",
        suitable_face_shapes=("Oval", "Heart", "Long"),
        difficulty="easy",
        maintenance="low",
        tags=("short", "classic", "low-effort"),
        features=("frames the face", "youthful", "office friendly"),
    ),
    Hairstyle(
        id=2,
        name="Long Straight",
        description="Naturally falling long straight hair with an elegant look.",
        suitable_face_shapes=("Oval", "Long", "Heart"),
        difficulty="medium",
        maintenance="medium",
        tags=("long", "straight", "elegant"),
        features=("graceful", "versatile", "fits most occasions"),
    ),
    Hairstyle(
        id=3,
        name="Big Waves",
        description="Romantic loose waves that add volume and dimension.",
        suitable_face_shapes=("Round", "Square", "Long"),
        difficulty="medium",
        maintenance="high",
        tags=("curly", "romantic", "feminine"),
        features=("adds volume", "softens the face", "fashionable"),
    ),
    Hairstyle(
        id=4,
        name="Lob",
        description="Shoulder-length cut combining the neatness of short hair with the softness of long hair.",
        suitable_face_shapes=("Oval", "Round", "Heart"),
        difficulty="easy",
        maintenance="low",
        tags=("mid-length", "trendy", "versatile"),
        features=("stylish", "easy care", "suits all ages"),
    ),
    Hairstyle(
        id=5,
        name="Pixie Cut",
        description="Very short cut that highlights facial contours and personality.",
        suitable_face_shapes=("Oval", "Heart"),
        difficulty="hard",
        maintenance="high",
        tags=("very short", "bold", "trendy"),
        features=("highlights features", "distinctive", "fresh"),
    ),
    Hairstyle(
        id=6,
        name="French Bangs",
        description="Effortless bangs that add a fashionable touch to any cut.",
        suitable_face_shapes=("Round", "Square", "Long"),
        difficulty="medium",
        maintenance="medium",
        tags=("bangs", "french", "trendy"),
        features=("softens the forehead", "youthful", "fashionable"),
    ),
    Hairstyle(
        id=7,
        name="Layered Long",
        description="Long hair with layers that add movement and dimension.",
        suitable_face_shapes=("Round", "Square", "Oval"),
        difficulty="medium",
        maintenance="medium",
        tags=("long", "layered", "dimensional"),
        features=("adds movement", "frames the face", "fuller look"),
    ),
    Hairstyle(
        id=8,
        name="Vintage Curls",
        description="Small retro curls with vintage charm.",
        suitable_face_shapes=("Oval", "Long"),
        difficulty="hard",
        maintenance="high",
        tags=("curly", "vintage", "bold"),
        features=("retro style", "distinctive", "special occasions"),
    ),
)


def recommended_for(face_shape: str) -> List[Hairstyle]:
    wanted = (face_shape or "").strip().lower()
    return [h for h in HAIRSTYLES if wanted in (s.lower() for s in h.suitable_face_shapes)]


def all_tags() -> List[str]:
    seen: List[str] = []
    for style in HAIRSTYLES:
        for tag in style.tags:
            if tag not in seen:
                seen.append(tag)
    return seen


def by_tag(tag: str) -> List[Hairstyle]:
    return filter_hairstyles(tags=[tag])


def filter_hairstyles(
    styles: Iterable[Hairstyle] = HAIRSTYLES,
    search: str = "",
    tags: Iterable[str] = (),
    difficulty: Optional[str] = None,
) -> List[Hairstyle]:
    """
    Gallery filter. ``search`` matches name, description or any tag
    (case-insensitive); every tag in ``tags`` must be present; ``difficulty``
    must match exactly. Empty criteria match everything.
    """
    term = (search or "").strip().lower()
    wanted = [t for t in tags if t]
    out: List[Hairstyle] = []
    for style in styles:
        if term and not (
            term in style.name.lower()
            or term in style.description.lower()
            or any(term in tag.lower() for tag in style.tags)
        ):
            continue
        if any(tag not in style.tags for tag in wanted):
            continue
        if difficulty and style.difficulty != difficulty:
            continue
        out.append(style)
    return out


def find_hairstyle(hairstyle_id: int) -> Optional[Hairstyle]:
    for style in HAIRSTYLES:
        if style.id == hairstyle_id:
            return style
    return None


def describe_face_shape(face_shape: str) -> str:
    return FACE_SHAPE_DESCRIPTIONS.get(face_shape, "No specific facial features detected")
