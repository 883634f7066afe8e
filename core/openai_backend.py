# -*- coding: utf-8 -*-
"""
openai_backend.py: capability binding backed by the OpenAI Responses API.

The HTTP calls are blocking (requests) and run in a worker thread so the
event loop keeps serving the UI while a prompt is in flight.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Any, Dict, List, Optional, Sequence

import requests

from infra.capabilities import (
    AbortHandle,
    Availability,
    Capabilities,
    ExpectedIO,
    LanguageDetector,
    LanguageModel,
    Message,
    PromptSession,
    Translator,
    TranslatorSession,
)
from infra.config import API_KEY_PATH, BASE_URL, DEFAULT_MODEL, JOURNAL_FILE, TIMEOUT
from infra.localization import language_name
from infra.log_journal import append_prompt_entry
from infra.models import DetectionCandidate, ImageBlob, extract_json_array

logger = logging.getLogger(__name__)


class OpenAIClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_key_path: str = API_KEY_PATH,
        base_url: str = BASE_URL,
        model: str = DEFAULT_MODEL,
        request_timeout: tuple = TIMEOUT,
        journal_path: Optional[str] = JOURNAL_FILE,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY") or self._load_api_key(api_key_path)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = request_timeout
        self.journal_path = journal_path

        self.session = session or requests.Session()
        if self.api_key:
            self.session.headers.update({"Authorization": f"Bearer {self.api_key}"})

    @staticmethod
    def _load_api_key(path: str) -> Optional[str]:
        if not os.path.isfile(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip() or None

    # -------- Availability --------

    def model_available(self) -> bool:
        if not self.api_key:
            return False
        url = f"{self.base_url}/models/{self.model}"
        try:
            resp = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.info("Model availability check failed: %s", exc)
            return False
        return resp.status_code == 200

    # -------- Responses --------

    def respond(
        self,
        input_items: List[Dict[str, Any]],
        *,
        purpose: str,
        instructions: Optional[str] = None,
    ) -> str:
        payload: Dict[str, Any] = {"model": self.model, "input": input_items}
        if instructions:
            payload["instructions"] = instructions

        url = f"{self.base_url}/responses"
        start = time.time()
        try:
            resp = self.session.post(url, json=payload, timeout=self.timeout)
            if resp.status_code >= 300:
                try:
                    err = resp.json()
                except ValueError:
                    err = resp.text
                raise RuntimeError(f"Responses API HTTP {resp.status_code}: {err}")
            try:
                data = resp.json()
            except ValueError as e:
                raise RuntimeError(f"Invalid JSON from Responses API: {e}")
        except (requests.RequestException, RuntimeError) as exc:
            self._journal(purpose, time.time() - start, None, error=str(exc))
            raise

        self._journal(purpose, time.time() - start, data.get("usage"))
        return _extract_output_text(data)

    def _journal(self, purpose: str, elapsed: float, usage: Optional[dict], error: Optional[str] = None) -> None:
        if not self.journal_path:
            return
        usage = usage or {}
        try:
            append_prompt_entry(
                purpose=purpose,
                model=self.model,
                elapsed_sec=elapsed,
                input_tokens=usage.get("input_tokens"),
                output_tokens=usage.get("output_tokens"),
                total_tokens=usage.get("total_tokens"),
                ok=error is None,
                error=error,
                path=self.journal_path,
            )
        except OSError as exc:
            logger.debug("Could not write AI journal: %s", exc)


def _extract_output_text(resp_json: dict) -> str:
    """
    Takes the first text fragment of the 'output' items.
    Falls back to the convenience 'output_text' field.
    """
    output = resp_json.get("output") or []
    for item in output:
        if not isinstance(item, dict):
            continue
        content = item.get("content")
        if not isinstance(content, list):
            continue
        for piece in content:
            if isinstance(piece, dict) and piece.get("type") == "output_text":
                val = piece.get("text") or piece.get("value") or ""
                if isinstance(val, str) and val.strip():
                    return val.strip()

    text = resp_json.get("output_text")
    return text.strip() if isinstance(text, str) else ""


def _to_response_input(messages: Sequence[Message]) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    for message in messages:
        parts: List[Dict[str, Any]] = []
        for part in message.get("content") or []:
            kind = part.get("type")
            value = part.get("value")
            if kind == "text":
                parts.append({"type": "input_text", "text": str(value)})
            elif kind == "image" and isinstance(value, ImageBlob):
                parts.append({"type": "input_image", "image_url": value.to_data_url()})
            else:
                raise ValueError(f"Unsupported message part: {kind!r}")
        items.append({"role": message.get("role", "user"), "content": parts})
    return items


def _output_language(expected_outputs: Optional[ExpectedIO]) -> Optional[str]:
    for item in expected_outputs or []:
        languages = item.get("languages") or []
        if languages:
            return languages[0]
    return None


# ============================== CAPABILITIES ==============================

class OpenAIPromptSession(PromptSession):
    def __init__(self, client: OpenAIClient, output_language: Optional[str] = None, purpose: str = "prompt"):
        self.client = client
        self.output_language = output_language
        self.purpose = purpose

    async def prompt(self, messages: Sequence[Message], *, signal: Optional[AbortHandle] = None) -> str:
        instructions = None
        if self.output_language:
            instructions = f"Always answer in {language_name(self.output_language)}."
        call = asyncio.to_thread(
            self.client.respond,
            _to_response_input(messages),
            purpose=self.purpose,
            instructions=instructions,
        )
        if signal is not None:
            return await signal.guard(call)
        return await call


class OpenAILanguageModel(LanguageModel):
    def __init__(self, client: OpenAIClient):
        self.client = client

    async def availability(self) -> Availability:
        ok = await asyncio.to_thread(self.client.model_available)
        return Availability.AVAILABLE if ok else Availability.UNAVAILABLE

    async def create(
        self,
        *,
        signal: Optional[AbortHandle] = None,
        expected_inputs: Optional[ExpectedIO] = None,
        expected_outputs: Optional[ExpectedIO] = None,
    ) -> OpenAIPromptSession:
        if signal is not None:
            signal.raise_if_aborted()
        has_image = any(item.get("type") == "image" for item in expected_inputs or [])
        return OpenAIPromptSession(
            self.client,
            output_language=_output_language(expected_outputs),
            purpose="multimodal" if has_image else "text",
        )


class OpenAITranslatorSession(TranslatorSession):
    def __init__(self, client: OpenAIClient, source: str, target: str):
        self.client = client
        self.source = source
        self.target = target

    async def translate(self, text: str) -> str:
        instructions = (
            f"Translate the user's text from {language_name(self.source)} to {language_name(self.target)}. "
            "Keep placeholders in curly braces such as {name} unchanged. "
            "Reply with the translation only."
        )
        return await asyncio.to_thread(
            self.client.respond,
            [{"role": "user", "content": [{"type": "input_text", "text": text}]}],
            purpose="translate",
            instructions=instructions,
        )


class OpenAITranslator(Translator):
    def __init__(self, client: OpenAIClient):
        self.client = client

    async def availability(self, source: str, target: str) -> Availability:
        ok = await asyncio.to_thread(self.client.model_available)
        return Availability.AVAILABLE if ok else Availability.UNAVAILABLE

    async def create(self, source: str, target: str) -> OpenAITranslatorSession:
        return OpenAITranslatorSession(self.client, source, target)


class OpenAILanguageDetector(LanguageDetector):
    def __init__(self, client: OpenAIClient):
        self.client = client

    async def detect(self, text: str) -> List[DetectionCandidate]:
        instructions = (
            "Identify the language of the user's text (it may be a locale tag such as en-US). "
            'Reply with a JSON array like [{"language": "fr", "confidence": 0.9}] '
            "ordered by decreasing confidence, confidence between 0 and 1."
        )
        raw = await asyncio.to_thread(
            self.client.respond,
            [{"role": "user", "content": [{"type": "input_text", "text": text}]}],
            purpose="detect",
            instructions=instructions,
        )
        items = extract_json_array(raw) or []
        out: List[DetectionCandidate] = []
        for item in items:
            if isinstance(item, dict) and item.get("language"):
                try:
                    out.append(DetectionCandidate.model_validate(item))
                except ValueError:
                    continue
        return out


def build_capabilities(offline: bool = False, **client_kwargs: Any) -> Capabilities:
    """Capabilities backed by the Responses API, or none at all when offline."""
    if offline:
        return Capabilities.none()
    client = OpenAIClient(**client_kwargs)
    return Capabilities(
        detector=OpenAILanguageDetector(client),
        translator=OpenAITranslator(client),
        language_model=OpenAILanguageModel(client),
    )


__all__ = [
    "OpenAIClient",
    "OpenAILanguageDetector",
    "OpenAILanguageModel",
    "OpenAIPromptSession",
    "OpenAITranslator",
    "OpenAITranslatorSession",
    "build_capabilities",
]
