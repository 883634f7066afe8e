# -*- coding: utf-8 -*-
"""Localization engine with runtime language switching and on-demand translation tables."""
from __future__ import annotations

import asyncio
import locale
import logging
import math
import os
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from infra.capabilities import Capabilities, is_usable
from infra.config import DEFAULT_LANGUAGE, DETECTION_CONFIDENCE_THRESHOLD
from infra.models import DetectionCandidate, Language
from infra.settings import (
    PREFERRED_LANGUAGE_KEY,
    TRANSLATION_KEY_PREFIX,
    LocalStore,
    translation_key,
)

logger = logging.getLogger(__name__)

SUPPORTED_LANGUAGES: Tuple[Language, ...] = (
    Language(code="en", name="English", native_name="English"),
    Language(code="zh-CN", name="Chinese", native_name="中文"),
    Language(code="ja", name="Japanese", native_name="日本語"),
    Language(code="ko", name="Korean", native_name="한국어"),
    Language(code="es", name="Spanish", native_name="Español"),
    Language(code="fr", name="French", native_name="Français"),
    Language(code="de", name="German", native_name="Deutsch"),
)

ENGLISH_TRANSLATIONS: Dict[str, str] = {
    "ai.retryCount": "Attempt {count} of {max}",
    "ai.retryLimit": "Retry limit reached. Skip this step or start over.",
    "ai.skipHint": "You can skip this step and continue with demo data.",
    "ai.slow": "This is taking longer than usual...",
    "ai.unavailable": "On-device AI is not available.",
    "analysis.analyzing": "AI is analyzing facial features...",
    "analysis.cancelled": "Analysis cancelled.",
    "analysis.confidence": "Confidence: {confidence}",
    "analysis.failed": "Face analysis failed: {error}",
    "analysis.mockNote": "Demo data: the AI model was not used.",
    "analysis.noFace": "No face detected. Please retake the photo with your face clearly visible.",
    "analysis.proportions": "Proportions: {proportions}",
    "analysis.shape": "Face shape: {faceShape}",
    "analysis.symmetry": "Symmetry: {symmetry}",
    "analysis.title": "Step 2: AI Face Analysis",
    "app.subtitle": "On-device AI · Privacy protection · Offline available",
    "app.title": "AI Hairstyle Advisor",
    "button.analyze": "Analyze",
    "button.cancel": "Cancel",
    "button.generate": "Generate AI Advice",
    "button.history": "History",
    "button.journal": "Journal",
    "button.retry": "Try Again",
    "button.selectPhoto": "Select Photo",
    "button.settings": "Settings",
    "button.skip": "Skip (use demo data)",
    "camera.noPhoto": "Please select a photo first.",
    "camera.photoLoaded": "Photo loaded: {filename}",
    "camera.selectTitle": "Select a front-facing photo",
    "camera.tip1": "Choose a well-lit environment",
    "camera.tip2": "Face the camera directly, keep face clear",
    "camera.tip3": "Avoid wearing hats or sunglasses",
    "camera.title": "Step 1: Upload Photo",
    "cli.arg.clear": "Delete all history records.",
    "cli.arg.difficulty": "Only list hairstyles of this difficulty.",
    "cli.arg.export": "Write the history to this JSON file.",
    "cli.arg.faceShape": "Only list hairstyles suited to this face shape.",
    "cli.arg.hairstyle": "Hairstyle id to generate advice for (default: best match).",
    "cli.arg.import": "Replace the history with the records in this JSON file.",
    "cli.arg.last": "Number of most recent journal records to show.",
    "cli.arg.language": "Force the interface language.",
    "cli.arg.offline": "Do not contact the AI service; use demo data.",
    "cli.arg.photo": "Path to a front-facing photo.",
    "cli.arg.search": "Only list hairstyles whose name, description or tags contain this text.",
    "cli.arg.skip": "Use demo data instead of asking when an AI step fails.",
    "cli.arg.tag": "Only list hairstyles with this tag (repeat to require several).",
    "cli.arg.verbose": "Verbose logging.",
    "cli.description": "AI hairstyle advisor: face-shape analysis and styling advice",
    "cli.languageSet": "Interface language: {language} ({code}).",
    "cli.noHairstyle": "No hairstyle with id {id}.",
    "cli.retryPrompt": "[r]etry, [s]kip, [q]uit? ",
    "common.cancel": "Cancel",
    "common.close": "Close",
    "common.error": "An error occurred",
    "common.loading": "Loading...",
    "common.translating": "Translating to {language}...",
    "difficulty.easy": "Easy",
    "difficulty.hard": "Hard",
    "difficulty.medium": "Medium",
    "faceShape.Heart": "Wider forehead, sharper chin, need to balance upper and lower proportions",
    "faceShape.Long": "Face length is significantly greater than face width, need to increase width through hairstyle",
    "faceShape.Oval": "Standard face shape, suitable for almost all hairstyles",
    "faceShape.Round": "Face length and width are similar, need to elongate face shape through hairstyle",
    "faceShape.Square": "Obvious jaw angle, need to soften contours through hairstyle",
    "gallery.all": "All",
    "gallery.difficulty": "Difficulty: {difficulty}",
    "gallery.difficultyFilter": "Difficulty:",
    "gallery.maintenance": "Maintenance: {maintenance}",
    "gallery.noResults": "No matching hairstyles found",
    "gallery.recommended": "Recommended",
    "gallery.search": "Search:",
    "gallery.showing": "Showing {count} of {total} hairstyles",
    "gallery.subtitle": "Based on your {faceShape} face shape, these hairstyles are recommended for you",
    "gallery.tagFilter": "Tag:",
    "gallery.tags": "Tags: {tags}",
    "gallery.title": "Step 3: Choose Your Favorite Hairstyle",
    "history.cleared": "History cleared.",
    "history.empty": "No records yet.",
    "history.exported": "History exported to {path}",
    "history.importFailed": "Could not import history from {path}",
    "history.imported": "History imported from {path}",
    "history.saved": "Saved to history.",
    "history.title": "Analysis History",
    "journal.empty": "No AI calls recorded yet.",
    "journal.title": "AI Call Journal",
    "language.apiUnavailable": "Translation API unavailable",
    "language.current": "Current language: {language}",
    "language.fallbackNotice": "Could not translate the interface to {language}. Showing English instead.",
    "language.hint": "Language changes apply immediately.",
    "language.label": "Interface language:",
    "language.switched": "Language switched to {language}.",
    "recommender.basedOn": "Based on your {faceShape} face shape and selected {hairstyle}",
    "recommender.failed": "Advice generation failed: {error}",
    "recommender.generating": "AI is generating personalized advice...",
    "recommender.missingInfo": "Missing necessary information, please analyze a photo and select a hairstyle",
    "recommender.sections.caution": "Things to Note",
    "recommender.sections.maintenance": "Maintenance Tips",
    "recommender.sections.makeup": "Makeup and Outfit",
    "recommender.sections.reason": "Why It Suits You",
    "recommender.sections.styling": "Styling Suggestions",
    "recommender.title": "AI Hairstyle Recommendation",
    "settings.title": "Settings",
    "status.analyzing": "Analyzing...",
    "status.cancelled": "Cancelled.",
    "status.done": "Done.",
    "status.error": "Error.",
    "status.generating": "Generating advice...",
    "status.ready": "Ready",
    "status.translating": "Translating interface...",
    "storage.usage": "Storage usage: {size} MB",
}

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


class UnsupportedLanguageError(ValueError):
    """The requested code is not in :data:`SUPPORTED_LANGUAGES`."""


class TranslationTotalFailure(RuntimeError):
    """Not a single entry could be translated for the requested language."""


class LanguageState(BaseModel):
    """Immutable snapshot handed to subscribers."""
    model_config = ConfigDict(frozen=True)

    current_language: str = DEFAULT_LANGUAGE
    is_translating: bool = False
    fallback_active: bool = False
    # language the latest switch asked for, kept after a fallback so the notice can name it
    requested_language: Optional[str] = None
    last_error: Optional[str] = None


Listener = Callable[[LanguageState], None]


def available_languages() -> tuple[str, ...]:
    return tuple(lang.code for lang in SUPPORTED_LANGUAGES)


def language_name(code: str) -> str:
    for lang in SUPPORTED_LANGUAGES:
        if lang.code == code:
            return lang.native_name
    return code


def fallback_notice(translate: Callable[..., str], requested: str) -> str:
    """Notice for a switch to ``requested`` that ended on English; names the language, not the error."""
    return translate("language.fallbackNotice", language=language_name(normalize_language(requested) or requested))


def normalize_language(language: Optional[str]) -> Optional[str]:
    """Map ``fr-FR``, ``zh`` or ``EN`` onto a supported code; None if nothing matches."""
    if not language:
        return None
    candidate = str(language).strip().replace("_", "-").lower()
    if not candidate:
        return None
    for code in available_languages():
        if code.lower() == candidate:
            return code
    primary = candidate.split("-", 1)[0]
    for code in available_languages():
        if code.lower().split("-", 1)[0] == primary:
            return code
    return None


def platform_locale() -> str:
    """Locale of the running process as a BCP-47-ish tag, e.g. ``en-US``."""
    try:
        value = locale.getlocale()[0]
    except ValueError:
        value = None
    value = value or os.environ.get("LC_ALL") or os.environ.get("LANG") or DEFAULT_LANGUAGE
    value = value.split(".", 1)[0]
    if value in ("C", "POSIX"):
        return DEFAULT_LANGUAGE
    return value.replace("_", "-")


def _present(text: Any) -> bool:
    return isinstance(text, str) and bool(text.strip())


def _fill_placeholders(text: str, params: Dict[str, Any]) -> str:
    if not params:
        return text

    def _sub(match: "re.Match[str]") -> str:
        name = match.group(1)
        if name in params and params[name] is not None:
            return str(params[name])
        return match.group(0)

    return _PLACEHOLDER_RE.sub(_sub, text)


def _valid_candidates(raw: Any) -> List[DetectionCandidate]:
    """Well-formed candidates with a finite confidence; malformed items are dropped."""
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, dict)):
        raise TypeError(f"expected a list of candidates, got {type(raw).__name__}")
    out: List[DetectionCandidate] = []
    for item in raw:
        try:
            candidate = item if isinstance(item, DetectionCandidate) else DetectionCandidate.model_validate(item)
        except ValueError:
            logger.debug("Ignoring malformed detection candidate %r", item)
            continue
        if math.isfinite(candidate.confidence):
            out.append(candidate)
    return out


class TranslationCache:
    """Translation tables persisted in the local store, one entry per language."""

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    def get(self, language: str) -> Optional[Dict[str, str]]:
        if language == DEFAULT_LANGUAGE:
            return None
        raw = self._store.get(translation_key(language))
        if not isinstance(raw, dict) or not raw:
            return None
        table = dict(ENGLISH_TRANSLATIONS)
        table.update({str(k): v for k, v in raw.items() if _present(v)})
        return table

    def put(self, language: str, table: Dict[str, str]) -> None:
        if language == DEFAULT_LANGUAGE:
            return
        self._store.set(translation_key(language), dict(table))

    def languages(self) -> List[str]:
        return [key[len(TRANSLATION_KEY_PREFIX):] for key in self._store.keys(TRANSLATION_KEY_PREFIX)]

    def clear(self) -> None:
        for key in self._store.keys(TRANSLATION_KEY_PREFIX):
            self._store.remove(key)


class LanguageManager:
    """
    Single writer of the process-wide :class:`LanguageState`.

    Only :meth:`switch_language`, :meth:`reset_to_english` and
    :meth:`clear_error` mutate the state; every mutation is fanned out to the
    subscribers as an immutable snapshot.
    """

    def __init__(self, store: LocalStore, capabilities: Optional[Capabilities] = None) -> None:
        self._store = store
        self._capabilities = capabilities or Capabilities.none()
        self._cache = TranslationCache(store)
        self._state = LanguageState()
        self._table: Dict[str, str] = dict(ENGLISH_TRANSLATIONS)
        self._listeners: List[Listener] = []
        self._switch_lock = asyncio.Lock()
        # bumped by reset_to_english so an in-flight switch does not overwrite it
        self._generation = 0

    # ---- Observation -------------------------------------------------------

    @property
    def state(self) -> LanguageState:
        return self._state

    @property
    def current_language(self) -> str:
        return self._state.current_language

    @property
    def table(self) -> Dict[str, str]:
        return dict(self._table)

    def subscribe(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            self.unsubscribe(callback)

        return _unsubscribe

    def unsubscribe(self, callback: Listener) -> None:
        try:
            self._listeners.remove(callback)
        except ValueError:
            pass

    def _update(self, **changes: Any) -> None:
        self._state = self._state.model_copy(update=changes)

    def _publish(self, **changes: Any) -> None:
        if changes:
            self._update(**changes)
        snapshot = self._state
        for callback in tuple(self._listeners):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("Language listener %r failed", callback)

    # ---- Lookup ------------------------------------------------------------

    def translate(self, key: str, default: Optional[str] = None, /, **params: Any) -> str:
        text = self._table.get(key)
        if not _present(text):
            text = ENGLISH_TRANSLATIONS.get(key)
        if not _present(text):
            text = default if _present(default) else str(key)
        try:
            return _fill_placeholders(text, params)
        except Exception:
            return text

    T = translate

    @staticmethod
    def supported_languages() -> Tuple[Language, ...]:
        return SUPPORTED_LANGUAGES

    @staticmethod
    def language_name(code: str) -> str:
        return language_name(code)

    # ---- Detection ---------------------------------------------------------

    async def detect_preferred_language(self, locale_string: Optional[str] = None) -> Optional[str]:
        detector = self._capabilities.detector
        if detector is None:
            logger.info("Language detection capability not available")
            return None
        text = locale_string or platform_locale()
        try:
            raw_candidates = await detector.detect(text)
        except Exception as exc:
            logger.warning("Language detection failed for %r: %s", text, exc)
            return None

        try:
            candidates = _valid_candidates(raw_candidates)
        except TypeError as exc:
            logger.warning("Language detection returned %r: %s", raw_candidates, exc)
            return None

        for candidate in sorted(candidates, key=lambda c: c.confidence, reverse=True):
            if not candidate.confidence > DETECTION_CONFIDENCE_THRESHOLD:
                break
            code = normalize_language(candidate.language)
            if code:
                logger.debug("Detected language %s (%.2f) -> %s", candidate.language, candidate.confidence, code)
                return code
        return None

    def restore_cached(self) -> LanguageState:
        """Adopts the saved language when its table is already cached. No capability calls."""
        saved = normalize_language(self._store.get(PREFERRED_LANGUAGE_KEY))
        if not saved or saved == self._state.current_language:
            return self._state
        table = self._cache.get(saved)
        if table is None:
            return self._state
        self._table = table
        self._publish(current_language=saved, fallback_active=False)
        return self._state

    async def initialize(self) -> LanguageState:
        """Saved preference first, then detection, then English."""
        saved = normalize_language(self._store.get(PREFERRED_LANGUAGE_KEY))
        if saved:
            return await self.switch_language(saved)
        detected = await self.detect_preferred_language()
        if detected and detected != DEFAULT_LANGUAGE:
            return await self.switch_language(detected)
        return self._state

    # ---- Switching ---------------------------------------------------------

    async def switch_language(self, code: str) -> LanguageState:
        normalized = normalize_language(code)
        if normalized is None:
            raise UnsupportedLanguageError(f"Unsupported language: {code!r}")

        async with self._switch_lock:
            state = self._state
            if normalized == state.current_language and not state.fallback_active:
                return state

            if normalized == DEFAULT_LANGUAGE:
                self._table = dict(ENGLISH_TRANSLATIONS)
                self._store.set(PREFERRED_LANGUAGE_KEY, DEFAULT_LANGUAGE)
                self._publish(
                    current_language=DEFAULT_LANGUAGE,
                    requested_language=DEFAULT_LANGUAGE,
                    fallback_active=False,
                    last_error=None,
                )
                return self._state

            logger.info("Switching language to %s", normalized)
            generation = self._generation
            self._publish(is_translating=True, requested_language=normalized, last_error=None)
            try:
                table = self._cache.get(normalized)
                if table is None:
                    table = await self.build_translation_table(normalized)
                    self._cache.put(normalized, table)
                else:
                    logger.debug("Using cached translation table for %s", normalized)
                if generation != self._generation:
                    logger.info("Switch to %s superseded by a reset to English", normalized)
                else:
                    self._table = table
                    self._store.set(PREFERRED_LANGUAGE_KEY, normalized)
                    self._update(current_language=normalized, fallback_active=False, last_error=None)
            except TranslationTotalFailure as exc:
                logger.warning("Falling back to English: %s", exc)
                if generation == self._generation:
                    self._table = dict(ENGLISH_TRANSLATIONS)
                    self._store.set(PREFERRED_LANGUAGE_KEY, DEFAULT_LANGUAGE)
                    self._update(current_language=DEFAULT_LANGUAGE, fallback_active=True, last_error=str(exc))
            finally:
                self._publish(is_translating=False)
            return self._state

    async def build_translation_table(self, code: str) -> Dict[str, str]:
        """
        Translates every English entry one key at a time. A failed key keeps
        its English text; zero successful keys raises TranslationTotalFailure.
        """
        translator = self._capabilities.translator
        if translator is None:
            raise TranslationTotalFailure(f"Translation to {code} failed: translator not available")
        try:
            availability = await translator.availability(DEFAULT_LANGUAGE, code)
        except Exception as exc:
            raise TranslationTotalFailure(f"Translation to {code} failed: {exc}") from exc
        if not is_usable(availability):
            raise TranslationTotalFailure(f"Translation to {code} failed: translator {availability}")
        try:
            session = await translator.create(DEFAULT_LANGUAGE, code)
        except Exception as exc:
            raise TranslationTotalFailure(f"Translation to {code} failed: {exc}") from exc

        table: Dict[str, str] = {}
        translated = 0
        for key, text in ENGLISH_TRANSLATIONS.items():
            try:
                value = await session.translate(text)
            except Exception as exc:
                logger.warning("Failed to translate %r to %s: %s", key, code, exc)
                table[key] = text
                continue
            if _present(value):
                table[key] = value
                translated += 1
            else:
                table[key] = text

        if translated == 0:
            raise TranslationTotalFailure(f"Translation to {code} failed: no entry could be translated")
        logger.info("Built %s table: %d of %d entries translated", code, translated, len(table))
        return table

    async def translate_text(self, text: str, target: Optional[str] = None) -> str:
        """One-off translation of free text; returns ``text`` unchanged on any failure."""
        target = normalize_language(target) if target else self._state.current_language
        translator = self._capabilities.translator
        if not text or not target or target == DEFAULT_LANGUAGE or translator is None:
            return text
        try:
            if not is_usable(await translator.availability(DEFAULT_LANGUAGE, target)):
                return text
            session = await translator.create(DEFAULT_LANGUAGE, target)
            value = await session.translate(text)
        except Exception as exc:
            logger.warning("Translation of free text to %s failed: %s", target, exc)
            return text
        return value if _present(value) else text

    def reset_to_english(self) -> LanguageState:
        """Forces English immediately; a switch still building will not adopt its table."""
        self._generation += 1
        self._table = dict(ENGLISH_TRANSLATIONS)
        self._store.set(PREFERRED_LANGUAGE_KEY, DEFAULT_LANGUAGE)
        self._publish(current_language=DEFAULT_LANGUAGE, fallback_active=True)
        return self._state

    def clear_error(self) -> None:
        if self._state.last_error is not None:
            self._publish(last_error=None)

    # ---- Cache management --------------------------------------------------

    def cached_languages(self) -> List[str]:
        return self._cache.languages()

    def clear_cache(self) -> None:
        self._cache.clear()


__all__ = [
    "ENGLISH_TRANSLATIONS",
    "SUPPORTED_LANGUAGES",
    "LanguageManager",
    "LanguageState",
    "TranslationCache",
    "TranslationTotalFailure",
    "UnsupportedLanguageError",
    "available_languages",
    "language_name",
    "normalize_language",
    "platform_locale",
]
