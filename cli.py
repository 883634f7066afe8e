# -*- coding: utf-8 -*-
"""Command-line interface for the hairstyle advisor with localization."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, Optional

from core.ai_controller import AIController, OperationKind, OperationState
from core.catalog import (
    DIFFICULTIES,
    FACE_SHAPES,
    HAIRSTYLES,
    Hairstyle,
    all_tags,
    filter_hairstyles,
    find_hairstyle,
    recommended_for,
)
from core.errors import (
    AdvisorError,
    CapabilityUnavailableError,
    NoFaceDetectedError,
    OperationCancelledError,
    RetryLimitReachedError,
)
from core.openai_backend import build_capabilities
from infra.config import JOURNAL_FILE
from infra.history import AnalysisHistory
from infra.localization import LanguageManager, available_languages, fallback_notice
from infra.log_journal import read_last
from infra.models import ADVICE_SECTIONS, AdviceResult, FaceAnalysisResult, HistoryRecord, ImageBlob
from infra.settings import LocalStore

logger = logging.getLogger("hair_advisor.cli")


def build_parser(T: Callable[..., str]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=T("cli.description"))
    parser.add_argument(
        "--language",
        dest="language",
        choices=available_languages(),
        help=T("cli.arg.language"),
    )
    parser.add_argument("--offline", action="store_true", help=T("cli.arg.offline"))
    parser.add_argument("-v", "--verbose", action="store_true", help=T("cli.arg.verbose"))

    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze")
    analyze.add_argument("photo", help=T("cli.arg.photo"))
    analyze.add_argument("--hairstyle", type=int, help=T("cli.arg.hairstyle"))
    analyze.add_argument(
        "--skip-on-failure",
        dest="skip_on_failure",
        action="store_true",
        help=T("cli.arg.skip"),
    )

    styles = sub.add_parser("styles")
    styles.add_argument("--face-shape", dest="face_shape", choices=FACE_SHAPES, help=T("cli.arg.faceShape"))
    styles.add_argument("--tag", dest="tags", action="append", default=[], choices=all_tags(), help=T("cli.arg.tag"))
    styles.add_argument("--search", default="", help=T("cli.arg.search"))
    styles.add_argument("--difficulty", choices=DIFFICULTIES, help=T("cli.arg.difficulty"))

    sub.add_parser("languages")

    journal = sub.add_parser("journal")
    journal.add_argument("--last", type=int, default=20, help=T("cli.arg.last"))

    history = sub.add_parser("history")
    group = history.add_mutually_exclusive_group()
    group.add_argument("--export", dest="export_path", help=T("cli.arg.export"))
    group.add_argument("--import", dest="import_path", help=T("cli.arg.import"))
    group.add_argument("--clear", action="store_true", help=T("cli.arg.clear"))
    return parser


# ---- Presentation ---------------------------------------------------------

def print_analysis(T: Callable[..., str], result: FaceAnalysisResult) -> None:
    print(T("analysis.shape", faceShape=result.face_shape), flush=True)
    print(T("analysis.confidence", confidence=result.confidence), flush=True)
    print(T("analysis.symmetry", symmetry=result.features.symmetry), flush=True)
    print(T("analysis.proportions", proportions=result.features.proportions), flush=True)
    print(T(f"faceShape.{result.face_shape}", result.description), flush=True)
    if result.is_mock:
        print(T("analysis.mockNote"), flush=True)


def print_hairstyle(T: Callable[..., str], style: Hairstyle) -> None:
    print(f"[{style.id}] {style.name}: {style.description}", flush=True)
    print("    " + T("gallery.difficulty", difficulty=T(f"difficulty.{style.difficulty}", style.difficulty)), flush=True)
    print("    " + T("gallery.maintenance", maintenance=style.maintenance), flush=True)
    print("    " + T("gallery.tags", tags=", ".join(style.tags)), flush=True)


def print_advice(T: Callable[..., str], advice: AdviceResult) -> None:
    print("\n=== " + T("recommender.title") + " ===", flush=True)
    sections = advice.sections()
    if sum(1 for body in sections.values() if body) <= 1:
        print(advice.text, flush=True)
    else:
        for name in ADVICE_SECTIONS:
            if sections[name]:
                print(f"\n{T('recommender.sections.' + name)}", flush=True)
                print(sections[name], flush=True)
    if advice.is_mock:
        print("\n" + T("analysis.mockNote"), flush=True)


def describe_failure(T: Callable[..., str], state: OperationState, exc: AdvisorError) -> str:
    if isinstance(exc, NoFaceDetectedError):
        text = T("analysis.noFace") + f" ({exc.message})"
    elif isinstance(exc, CapabilityUnavailableError):
        text = T("ai.unavailable") + " " + T("ai.skipHint")
    elif isinstance(exc, RetryLimitReachedError):
        return T("ai.retryLimit")
    elif state.kind is OperationKind.ADVICE_GENERATION:
        text = T("recommender.failed", error=exc.message)
    else:
        text = T("analysis.failed", error=exc.message)
    if state.retry_count:
        text += "\n" + T("ai.retryCount", count=state.retry_count, max=state.max_retries)
    return text


# ---- Operations -----------------------------------------------------------

async def _ask_choice(T: Callable[..., str], skip_on_failure: bool) -> str:
    if skip_on_failure or not sys.stdin.isatty():
        return "s" if skip_on_failure else "q"
    answer = await asyncio.to_thread(input, T("cli.retryPrompt"))
    return (answer or "q").strip().lower()[:1]


async def run_with_recovery(
    T: Callable[..., str],
    state: OperationState,
    run: Callable[[], Awaitable[Any]],
    skip: Callable[[], Any],
    skip_on_failure: bool,
) -> Optional[Any]:
    """Runs an AI step; on failure asks the user to retry, skip to demo data or quit."""
    while True:
        try:
            return await run()
        except OperationCancelledError:
            print(T("status.cancelled"), flush=True)
            return None
        except AdvisorError as exc:
            print(describe_failure(T, state, exc), flush=True)
            choice = await _ask_choice(T, skip_on_failure)
            if choice == "r" and state.can_retry:
                continue
            if choice == "s" and state.can_skip:
                return skip()
            return None


async def cmd_analyze(args: argparse.Namespace, i18n: LanguageManager, controller: AIController, history: AnalysisHistory) -> int:
    T = i18n.translate
    try:
        image = ImageBlob.from_path(args.photo)
    except FileNotFoundError as exc:
        print(str(exc), flush=True)
        return 1
    print(T("camera.photoLoaded", filename=args.photo), flush=True)

    print(T("analysis.analyzing"), flush=True)
    analysis = await run_with_recovery(
        T,
        controller.face_analysis,
        lambda: controller.run_face_analysis(image),
        controller.skip_face_analysis,
        args.skip_on_failure,
    )
    if analysis is None:
        return 2
    print_analysis(T, analysis)

    if args.hairstyle is not None:
        hairstyle = find_hairstyle(args.hairstyle)
        if hairstyle is None:
            print(T("cli.noHairstyle", id=args.hairstyle), flush=True)
            return 1
    else:
        suggestions = recommended_for(analysis.face_shape)
        print("\n" + T("gallery.subtitle", faceShape=analysis.face_shape), flush=True)
        for style in suggestions:
            print_hairstyle(T, style)
        hairstyle = suggestions[0] if suggestions else HAIRSTYLES[0]

    print("\n" + T("recommender.basedOn", faceShape=analysis.face_shape, hairstyle=hairstyle.name), flush=True)
    print(T("recommender.generating"), flush=True)
    advice = await run_with_recovery(
        T,
        controller.advice_generation,
        lambda: controller.run_advice_generation(analysis, hairstyle),
        lambda: controller.skip_advice_generation(analysis, hairstyle),
        args.skip_on_failure,
    )
    if advice is None:
        return 2
    print_advice(T, advice)

    history.add(
        HistoryRecord(
            face_shape=analysis.face_shape,
            hairstyle_name=hairstyle.name,
            recommendation_text=advice.text,
        )
    )
    print("\n" + T("history.saved"), flush=True)
    return 0


def cmd_styles(args: argparse.Namespace, i18n: LanguageManager) -> int:
    T = i18n.translate
    base = recommended_for(args.face_shape) if args.face_shape else list(HAIRSTYLES)
    styles = filter_hairstyles(base, search=args.search, tags=args.tags, difficulty=args.difficulty)
    if args.face_shape:
        print(T("gallery.subtitle", faceShape=args.face_shape), flush=True)
        print(T(f"faceShape.{args.face_shape}"), flush=True)
    if not styles:
        print(T("gallery.noResults"), flush=True)
    for style in styles:
        print_hairstyle(T, style)
    print(T("gallery.showing", count=len(styles), total=len(base)), flush=True)
    return 0


def cmd_languages(i18n: LanguageManager) -> int:
    cached = set(i18n.cached_languages())
    for lang in i18n.supported_languages():
        marker = "*" if lang.code == i18n.current_language else " "
        suffix = " (cached)" if lang.code in cached else ""
        print(f"{marker} {lang.code:<6} {lang.native_name} / {lang.name}{suffix}", flush=True)
    return 0


def cmd_journal(args: argparse.Namespace, i18n: LanguageManager) -> int:
    T = i18n.translate
    rows = read_last(max(args.last, 1), path=JOURNAL_FILE)
    if not rows:
        print(T("journal.empty"), flush=True)
    for row in rows:
        response = row.get("response") or {}
        status = "ok" if row.get("ok") else "FAILED"
        line = f"{row.get('ts', '?')}  {row.get('purpose', '?'):<10} {status:<6} {response.get('elapsed_sec', 0)}s"
        if response.get("total_tokens") is not None:
            line += f"  tokens={response['total_tokens']}"
        if response.get("cost_usd_est") is not None:
            line += f"  ${response['cost_usd_est']}"
        if row.get("error"):
            line += f"  {row['error']}"
        print(line, flush=True)
    return 0


def cmd_history(args: argparse.Namespace, i18n: LanguageManager, history: AnalysisHistory) -> int:
    T = i18n.translate
    if args.export_path:
        with open(args.export_path, "w", encoding="utf-8") as fp:
            fp.write(history.export_json())
        print(T("history.exported", path=args.export_path), flush=True)
        return 0
    if args.import_path:
        try:
            with open(args.import_path, "r", encoding="utf-8") as fp:
                payload = fp.read()
        except OSError as exc:
            logger.warning("Cannot read %s: %s", args.import_path, exc)
            payload = ""
        if not history.import_json(payload):
            print(T("history.importFailed", path=args.import_path), flush=True)
            return 1
        print(T("history.imported", path=args.import_path), flush=True)
        return 0
    if args.clear:
        history.clear()
        print(T("history.cleared"), flush=True)
        return 0

    records = history.records()
    if not records:
        print(T("history.empty"), flush=True)
    for record in records:
        print(f"{record.timestamp}  {record.face_shape:<8} {record.hairstyle_name}", flush=True)
    usage = history.storage_usage()
    print(T("storage.usage", size=usage["total_mb"]), flush=True)
    return 0


async def run(args: argparse.Namespace, store: Optional[LocalStore] = None) -> int:
    store = store or LocalStore()
    capabilities = build_capabilities(offline=args.offline)
    i18n = LanguageManager(store, capabilities)
    T = i18n.translate

    if args.language:
        print(T("common.translating", language=i18n.language_name(args.language)), flush=True)
        state = await i18n.switch_language(args.language)
        if state.fallback_active:
            print(fallback_notice(T, args.language), flush=True)
        else:
            print(
                T("cli.languageSet", language=i18n.language_name(state.current_language), code=state.current_language),
                flush=True,
            )
    elif args.command == "analyze":
        state = await i18n.initialize()
        if state.fallback_active and state.last_error:
            logger.warning("Interface language fell back to English: %s", state.last_error)
    else:
        i18n.restore_cached()

    history = AnalysisHistory(store)
    if args.command == "analyze":
        controller = AIController(capabilities, language=lambda: i18n.current_language)
        return await cmd_analyze(args, i18n, controller, history)
    if args.command == "styles":
        return cmd_styles(args, i18n)
    if args.command == "languages":
        return cmd_languages(i18n)
    if args.command == "journal":
        return cmd_journal(args, i18n)
    return cmd_history(args, i18n, history)


def main(argv: Optional[list[str]] = None) -> int:
    store = LocalStore()
    preview = LanguageManager(store)
    preview.restore_cached()
    parser = build_parser(preview.translate)
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run(args, store))
    except KeyboardInterrupt:
        print("", flush=True)
        return 130


if __name__ == "__main__":
    sys.exit(main())
