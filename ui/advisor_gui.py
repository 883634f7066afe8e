# -*- coding: utf-8 -*-
"""Tkinter GUI for the hairstyle advisor wizard with localization support."""
from __future__ import annotations

import asyncio
import concurrent.futures
import json
import logging
import os
import threading
import tkinter as tk
from tkinter import filedialog, messagebox, Toplevel
from tkinter import ttk
from tkinter.scrolledtext import ScrolledText
from typing import Any, Callable, Coroutine, Dict, Optional, Sequence

from core.ai_controller import AIController, OperationKind, OperationState, OperationStatus
from core.catalog import DIFFICULTIES, HAIRSTYLES, Hairstyle, all_tags, filter_hairstyles, recommended_for
from core.errors import AdvisorError, CapabilityUnavailableError, NoFaceDetectedError, OperationCancelledError
from core.openai_backend import build_capabilities
from infra.config import (
    HISTORY_WINDOW_SIZE,
    JOURNAL_MAX_RECORDS,
    JOURNAL_WINDOW_SIZE,
    LOG_FONT,
    PAD_X,
    PAD_Y,
    SKIP_OFFER_DELAY_MS,
    SLOW_OPERATION_WARNING_MS,
    WINDOW_SIZE,
    WINDOW_TITLE,
)
from infra.history import AnalysisHistory
from infra.localization import LanguageManager, LanguageState, fallback_notice
from infra.log_journal import read_last
from infra.models import ADVICE_SECTIONS, AdviceResult, FaceAnalysisResult, HistoryRecord, ImageBlob
from infra.settings import LocalStore

logger = logging.getLogger(__name__)


class AsyncRunner:
    """Event loop on a daemon thread; Tk hands coroutines over and gets callbacks back."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self.loop.run_forever, daemon=True)
        self._thread.start()

    def submit(self, coro: Coroutine[Any, Any, Any]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)


class SettingsDialog(Toplevel):
    """Simple settings window to select the interface language."""

    def __init__(self, app: "AdvisorGUI") -> None:
        super().__init__(app)
        self.app = app
        self.i18n = app.i18n
        self._updating = False
        self._code_to_name: Dict[str, str] = {}
        self._name_to_code: Dict[str, str] = {}

        self.geometry("380x210")
        self.resizable(False, False)
        self.transient(app)
        self.grab_set()
        self.protocol("WM_DELETE_WINDOW", self._close)

        self.columnconfigure(0, weight=1)
        self.columnconfigure(1, weight=1)

        self._build_widgets()
        self.refresh_texts()
        self.bind("<Escape>", lambda _event: self._close())

    def _build_widgets(self) -> None:
        padding = {"padx": PAD_X, "pady": (PAD_Y, 4)}
        self.lbl_language = tk.Label(self, anchor="w")
        self.lbl_language.grid(row=0, column=0, sticky="w", **padding)

        self.lang_var = tk.StringVar()
        self.cbo_language = ttk.Combobox(self, state="readonly", textvariable=self.lang_var, width=24)
        self.cbo_language.grid(row=1, column=0, columnspan=2, sticky="we", padx=PAD_X)
        self.cbo_language.bind("<<ComboboxSelected>>", lambda _event: self._on_language_selected())

        self.lbl_hint = tk.Label(self, anchor="w")
        self.lbl_hint.grid(row=2, column=0, columnspan=2, sticky="w", padx=PAD_X, pady=(8, 4))

        self.lbl_applied = tk.Label(self, anchor="w", fg="#008000", wraplength=340, justify=tk.LEFT)
        self.lbl_applied.grid(row=3, column=0, columnspan=2, sticky="w", padx=PAD_X, pady=(0, 8))

        self.btn_close = ttk.Button(self, command=self._close)
        self.btn_close.grid(row=4, column=1, sticky="e", padx=PAD_X, pady=(0, PAD_Y))

    def _on_language_selected(self) -> None:
        if self._updating:
            return
        code = self._name_to_code.get(self.lang_var.get())
        if not code:
            return
        self.cbo_language.config(state=tk.DISABLED)
        self.lbl_applied.config(text=self.i18n.translate("common.translating", language=self.lang_var.get()), fg="#555555")
        self.app.switch_language(code)

    def refresh_texts(self) -> None:
        T = self.i18n.translate
        self._updating = True
        try:
            state = self.i18n.state
            self.title(T("settings.title"))
            self.lbl_language.config(text=T("language.label"))
            self.lbl_hint.config(text=T("language.hint"))
            self.btn_close.config(text=T("common.close"))

            self._code_to_name = {lang.code: lang.native_name for lang in self.i18n.supported_languages()}
            self._name_to_code = {name: code for code, name in self._code_to_name.items()}
            self.cbo_language.config(values=list(self._code_to_name.values()))
            self.cbo_language.config(state=tk.DISABLED if state.is_translating else "readonly")

            current_name = self._code_to_name.get(state.current_language, state.current_language)
            self.lang_var.set(current_name)
            if state.is_translating:
                return
            if state.fallback_active and state.last_error:
                self.lbl_applied.config(text=T("language.apiUnavailable"), fg="#b00020")
            else:
                self.lbl_applied.config(text=T("language.switched", language=current_name), fg="#008000")
        finally:
            self._updating = False

    def _close(self) -> None:
        self.app._settings_closed(self)
        self.destroy()


class AdvisorGUI(tk.Tk):
    """Main window: photo → analysis → hairstyle → advice."""

    def __init__(self, offline: bool = False, store: Optional[LocalStore] = None) -> None:
        super().__init__()
        self.geometry(WINDOW_SIZE)

        self.runner = AsyncRunner()
        self.store = store or LocalStore()
        capabilities = build_capabilities(offline=offline)
        self.i18n = LanguageManager(self.store, capabilities)
        self.i18n.restore_cached()
        self.controller = AIController(capabilities, language=lambda: self.i18n.current_language)
        self.history = AnalysisHistory(self.store)

        self.image: Optional[ImageBlob] = None
        self.image_name: Optional[str] = None
        self.analysis: Optional[FaceAnalysisResult] = None
        self.advice: Optional[AdviceResult] = None
        self._last_kind: Optional[OperationKind] = None

        self.status: tk.StringVar = tk.StringVar()
        self._status_key: Optional[str] = None
        self._status_kwargs: Dict[str, Any] = {}
        self.style_var: tk.StringVar = tk.StringVar()
        self._style_by_label: Dict[str, Hairstyle] = {}
        self.search_var: tk.StringVar = tk.StringVar()
        self.tag_var: tk.StringVar = tk.StringVar()
        self.difficulty_var: tk.StringVar = tk.StringVar()

        # UI references
        self.btn_photo: Optional[tk.Button] = None
        self.btn_analyze: Optional[tk.Button] = None
        self.btn_retry: Optional[tk.Button] = None
        self.btn_skip: Optional[tk.Button] = None
        self.btn_cancel: Optional[tk.Button] = None
        self.btn_generate: Optional[tk.Button] = None
        self.btn_history: Optional[tk.Button] = None
        self.btn_journal: Optional[tk.Button] = None
        self.btn_settings: Optional[tk.Button] = None
        self.cbo_style: Optional[ttk.Combobox] = None
        self.cbo_tag: Optional[ttk.Combobox] = None
        self.cbo_difficulty: Optional[ttk.Combobox] = None
        self.lbl_search: Optional[tk.Label] = None
        self.lbl_tag: Optional[tk.Label] = None
        self.lbl_difficulty: Optional[tk.Label] = None
        self.txt_logs: Optional[ScrolledText] = None
        self.progress: Optional[ttk.Progressbar] = None
        self.settings_window: Optional[SettingsDialog] = None

        self._build_ui()
        self._apply_language()
        self._set_status("status.ready")
        self._refresh_controls()

        self._lang_unsub = self.i18n.subscribe(self._on_language_change)
        self._ai_unsub = self.controller.subscribe(self._on_operation_change)
        self.protocol("WM_DELETE_WINDOW", self._on_close)

        self._submit(self.i18n.initialize(), on_error=self._log_exception)

    # ---- UI construction -------------------------------------------------

    def _build_ui(self) -> None:
        top = tk.Frame(self)
        top.pack(fill=tk.X, padx=PAD_X, pady=PAD_Y)

        self.btn_photo = tk.Button(top, command=self.choose_photo)
        self.btn_photo.pack(side=tk.LEFT)
        self.btn_analyze = tk.Button(top, command=self.analyze)
        self.btn_analyze.pack(side=tk.LEFT, padx=(8, 0))
        self.btn_retry = tk.Button(top, command=self.retry)
        self.btn_retry.pack(side=tk.LEFT, padx=(8, 0))
        self.btn_skip = tk.Button(top, command=self.skip)
        self.btn_skip.pack(side=tk.LEFT, padx=(8, 0))
        self.btn_cancel = tk.Button(top, command=self.cancel)
        self.btn_cancel.pack(side=tk.LEFT, padx=(8, 0))

        self.btn_settings = tk.Button(top, command=self.open_settings)
        self.btn_settings.pack(side=tk.RIGHT)
        self.btn_history = tk.Button(top, command=self.show_history)
        self.btn_history.pack(side=tk.RIGHT, padx=(0, 8))
        self.btn_journal = tk.Button(top, command=self.show_journal)
        self.btn_journal.pack(side=tk.RIGHT, padx=(0, 8))

        filters = tk.Frame(self)
        filters.pack(fill=tk.X, padx=PAD_X, pady=(0, PAD_Y))
        self.lbl_search = tk.Label(filters)
        self.lbl_search.pack(side=tk.LEFT)
        tk.Entry(filters, textvariable=self.search_var, width=20).pack(side=tk.LEFT, padx=(4, 12))
        self.lbl_tag = tk.Label(filters)
        self.lbl_tag.pack(side=tk.LEFT)
        self.cbo_tag = ttk.Combobox(filters, state="readonly", textvariable=self.tag_var, width=14)
        self.cbo_tag.pack(side=tk.LEFT, padx=(4, 12))
        self.lbl_difficulty = tk.Label(filters)
        self.lbl_difficulty.pack(side=tk.LEFT)
        self.cbo_difficulty = ttk.Combobox(filters, state="readonly", textvariable=self.difficulty_var, width=12)
        self.cbo_difficulty.pack(side=tk.LEFT, padx=(4, 0))
        self.search_var.trace_add("write", lambda *_: self._refresh_styles())
        self.cbo_tag.bind("<<ComboboxSelected>>", lambda _e: self._refresh_styles())
        self.cbo_difficulty.bind("<<ComboboxSelected>>", lambda _e: self._refresh_styles())

        styles = tk.Frame(self)
        styles.pack(fill=tk.X, padx=PAD_X)
        self.cbo_style = ttk.Combobox(styles, state="readonly", textvariable=self.style_var, width=48)
        self.cbo_style.pack(side=tk.LEFT)
        self.btn_generate = tk.Button(styles, command=self.generate_advice)
        self.btn_generate.pack(side=tk.LEFT, padx=(8, 0))

        self.txt_logs = ScrolledText(self, font=LOG_FONT)
        self.txt_logs.pack(fill=tk.BOTH, expand=True, padx=PAD_X, pady=PAD_Y)

        bar = tk.Frame(self)
        bar.pack(fill=tk.X, padx=PAD_X, pady=(0, PAD_Y))
        tk.Label(bar, textvariable=self.status, anchor="w").pack(side=tk.LEFT, fill=tk.X, expand=True)
        self.progress = ttk.Progressbar(bar, mode="indeterminate", length=160)
        self.progress.pack(side=tk.RIGHT)

    # ---- Localization helpers -------------------------------------------

    def _apply_language(self) -> None:
        T = self.i18n.translate
        self.title(T("app.title", WINDOW_TITLE))
        labels = (
            (self.btn_photo, "button.selectPhoto"),
            (self.btn_analyze, "button.analyze"),
            (self.btn_retry, "button.retry"),
            (self.btn_skip, "button.skip"),
            (self.btn_cancel, "button.cancel"),
            (self.btn_generate, "button.generate"),
            (self.btn_history, "button.history"),
            (self.btn_journal, "button.journal"),
            (self.btn_settings, "button.settings"),
            (self.lbl_search, "gallery.search"),
            (self.lbl_tag, "gallery.tagFilter"),
            (self.lbl_difficulty, "gallery.difficultyFilter"),
        )
        for widget, key in labels:
            if widget is not None:
                widget.config(text=T(key))
        self._refresh_filter_choices()
        self._refresh_styles()
        if self.settings_window:
            self.settings_window.refresh_texts()

    def _set_status(self, key: str, **kwargs: Any) -> None:
        self._status_key = key
        self._status_kwargs = kwargs
        self.status.set(self.i18n.translate(key, **kwargs))

    def _refresh_status(self) -> None:
        if self._status_key:
            self.status.set(self.i18n.translate(self._status_key, **self._status_kwargs))

    def _on_language_change(self, state: LanguageState) -> None:
        # runs on the event loop thread
        self.after(0, lambda s=state: self._apply_language_state(s))

    def _apply_language_state(self, state: LanguageState) -> None:
        if state.is_translating:
            self._set_busy(True)
            self._set_status("status.translating")
            return
        self._set_busy(self._any_running())
        self._apply_language()
        self._refresh_status()
        if state.fallback_active and state.last_error:
            logger.warning("Interface language fell back to English: %s", state.last_error)
            requested = state.requested_language or state.current_language
            self._log(fallback_notice(self.i18n.translate, requested))
            self._log(state.last_error)
            messagebox.showwarning(
                self.i18n.translate("settings.title"),
                self.i18n.translate("language.apiUnavailable"),
            )
            self.runner.call(self.i18n.clear_error)

    def switch_language(self, code: str) -> None:
        self._submit(self.i18n.switch_language(code), on_error=self._log_exception)

    # ---- General helpers -------------------------------------------------

    def _submit(
        self,
        coro: Coroutine[Any, Any, Any],
        on_success: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        future = self.runner.submit(coro)

        def _done(fut: concurrent.futures.Future) -> None:
            try:
                result = fut.result()
            except BaseException as exc:
                if on_error is not None:
                    self.after(0, lambda e=exc: on_error(e))
                return
            if on_success is not None:
                self.after(0, lambda r=result: on_success(r))

        future.add_done_callback(_done)

    def _log(self, msg: str) -> None:
        if self.txt_logs is not None:
            self.txt_logs.insert(tk.END, msg + "\n")
            self.txt_logs.see(tk.END)

    def _log_exception(self, exc: BaseException) -> None:
        logger.error("Background task failed: %s", exc)
        self._log(self.i18n.translate("common.error") + f": {exc}")

    def _set_busy(self, busy: bool) -> None:
        if self.progress is None:
            return
        if busy:
            self.progress.start(10)
            self.config(cursor="watch")
        else:
            self.progress.stop()
            self.config(cursor="")

    def _any_running(self) -> bool:
        return self.controller.face_analysis.is_running or self.controller.advice_generation.is_running

    def _refresh_controls(self) -> None:
        running = self._any_running()
        last = self.controller.state(self._last_kind) if self._last_kind else None

        def state_of(enabled: bool) -> str:
            return tk.NORMAL if enabled else tk.DISABLED

        if self.btn_photo is not None:
            self.btn_photo.config(state=state_of(not running))
        if self.btn_analyze is not None:
            self.btn_analyze.config(state=state_of(not running and self.image is not None))
        if self.btn_generate is not None:
            self.btn_generate.config(state=state_of(not running and self.analysis is not None))
        if self.btn_cancel is not None:
            self.btn_cancel.config(state=state_of(running))
        if self.btn_retry is not None:
            self.btn_retry.config(state=state_of(bool(last and last.can_retry) and not running))
        if self.btn_skip is not None and (running or not (last and last.can_skip)):
            self.btn_skip.config(state=tk.DISABLED)

    def _refresh_styles(self) -> None:
        if self.cbo_style is None:
            return
        T = self.i18n.translate
        recommended = recommended_for(self.analysis.face_shape) if self.analysis else []
        ordered = list(recommended) + [h for h in HAIRSTYLES if h not in recommended]
        tag = self._selected_choice(self.cbo_tag, all_tags())
        ordered = filter_hairstyles(
            ordered,
            search=self.search_var.get(),
            tags=[tag] if tag else [],
            difficulty=self._selected_choice(self.cbo_difficulty, DIFFICULTIES),
        )
        self._style_by_label = {}
        for style in ordered:
            prefix = "★ " if style in recommended else ""
            label = f"{prefix}{style.name} ({T('difficulty.' + style.difficulty, style.difficulty)})"
            self._style_by_label[label] = style
        labels = list(self._style_by_label)
        self.cbo_style.config(values=labels)
        if self.style_var.get() not in self._style_by_label:
            self.style_var.set(labels[0] if labels else "")

    def _refresh_filter_choices(self) -> None:
        T = self.i18n.translate
        choices = (
            (self.cbo_tag, [T("gallery.all")] + list(all_tags())),
            (self.cbo_difficulty, [T("gallery.all")] + [T("difficulty." + d, d) for d in DIFFICULTIES]),
        )
        for combo, values in choices:
            if combo is None:
                continue
            index = max(combo.current(), 0)
            combo.config(values=values)
            combo.current(index)

    @staticmethod
    def _selected_choice(combo: Optional[ttk.Combobox], options: Sequence[str]) -> Optional[str]:
        # index 0 is "All"
        index = combo.current() if combo is not None else -1
        if index <= 0 or index > len(options):
            return None
        return options[index - 1]

    def open_settings(self) -> None:
        if self.settings_window is not None and self.settings_window.winfo_exists():
            self.settings_window.lift()
            return
        self.settings_window = SettingsDialog(self)

    def _settings_closed(self, dialog: SettingsDialog) -> None:
        if self.settings_window is dialog:
            self.settings_window = None

    def _on_close(self) -> None:
        if self.settings_window is not None:
            self.settings_window.destroy()
            self.settings_window = None
        self.destroy()

    def destroy(self) -> None:  # type: ignore[override]
        for attr in ("_lang_unsub", "_ai_unsub"):
            unsub = getattr(self, attr, None)
            if unsub:
                unsub()
                setattr(self, attr, None)
        if hasattr(self, "runner"):
            self.runner.call(self.controller.cancel_operation)
            self.runner.stop()
        super().destroy()

    # ---- AI state --------------------------------------------------------

    def _on_operation_change(self, kind: OperationKind, state: OperationState) -> None:
        # runs on the event loop thread
        status = state.status
        self.after(0, lambda: self._apply_operation_state(kind, status))

    def _apply_operation_state(self, kind: OperationKind, status: OperationStatus) -> None:
        self._last_kind = kind
        self._set_busy(self._any_running())
        self._refresh_controls()
        if status is OperationStatus.RUNNING:
            self.after(SLOW_OPERATION_WARNING_MS, lambda: self._warn_if_slow(kind))
        elif status is OperationStatus.FAILED:
            self.after(SKIP_OFFER_DELAY_MS, lambda: self._offer_skip(kind))

    def _warn_if_slow(self, kind: OperationKind) -> None:
        if self.controller.state(kind).is_running:
            self._log(self.i18n.translate("ai.slow"))

    def _offer_skip(self, kind: OperationKind) -> None:
        state = self.controller.state(kind)
        if self._last_kind is kind and state.can_skip and self.btn_skip is not None:
            self.btn_skip.config(state=tk.NORMAL)
            if not isinstance(state.error, NoFaceDetectedError):
                self._log(self.i18n.translate("ai.skipHint"))

    def _report_failure(self, kind: OperationKind, exc: BaseException) -> None:
        T = self.i18n.translate
        state = self.controller.state(kind)
        if isinstance(exc, OperationCancelledError):
            self._log(T("analysis.cancelled") if kind is OperationKind.FACE_ANALYSIS else T("status.cancelled"))
            self._set_status("status.cancelled")
            return
        if isinstance(exc, NoFaceDetectedError):
            self._log(T("analysis.noFace") + f" ({exc.message})")
        elif isinstance(exc, CapabilityUnavailableError):
            self._log(T("ai.unavailable"))
        elif isinstance(exc, AdvisorError):
            key = "analysis.failed" if kind is OperationKind.FACE_ANALYSIS else "recommender.failed"
            self._log(T(key, error=exc.message))
        else:
            self._log_exception(exc)
        if state.can_retry:
            self._log(T("ai.retryCount", count=state.retry_count, max=state.max_retries))
        elif state.status is OperationStatus.FAILED:
            self._log(T("ai.retryLimit"))
        self._set_status("status.error")

    # ---- Actions ---------------------------------------------------------

    def choose_photo(self) -> None:
        T = self.i18n.translate
        path = filedialog.askopenfilename(
            title=T("camera.selectTitle"),
            filetypes=(("Images", "*.jpg *.jpeg *.png *.webp"), ("*", "*.*")),
        )
        if not path:
            return
        try:
            self.image = ImageBlob.from_path(path)
        except OSError as exc:
            messagebox.showerror(T("common.error"), str(exc))
            return
        self.image_name = os.path.basename(path)
        self.analysis = None
        self.advice = None
        self._last_kind = None
        self.runner.call(self.controller.clear_error)
        if self.txt_logs is not None:
            self.txt_logs.delete("1.0", tk.END)
        self._log(T("camera.photoLoaded", filename=self.image_name))
        for tip in ("camera.tip1", "camera.tip2", "camera.tip3"):
            self._log("  · " + T(tip))
        self._refresh_styles()
        self._refresh_controls()

    def analyze(self) -> None:
        T = self.i18n.translate
        if self.image is None:
            messagebox.showwarning(T("camera.title"), T("camera.noPhoto"))
            return
        self._last_kind = OperationKind.FACE_ANALYSIS
        self._set_status("status.analyzing")
        self._log(T("analysis.analyzing"))
        self._submit(
            self.controller.run_face_analysis(self.image),
            on_success=self._handle_analysis,
            on_error=lambda e: self._report_failure(OperationKind.FACE_ANALYSIS, e),
        )

    def _handle_analysis(self, result: FaceAnalysisResult) -> None:
        T = self.i18n.translate
        self.analysis = result
        self._log(T("analysis.shape", faceShape=result.face_shape))
        self._log(T("analysis.confidence", confidence=result.confidence))
        self._log(T("analysis.symmetry", symmetry=result.features.symmetry))
        self._log(T("analysis.proportions", proportions=result.features.proportions))
        self._log(T(f"faceShape.{result.face_shape}", result.description))
        if result.is_mock:
            self._log(T("analysis.mockNote"))
        self._log("\n" + T("gallery.subtitle", faceShape=result.face_shape))
        self._set_status("status.done")
        self._refresh_styles()
        self._refresh_controls()

    def _selected_style(self) -> Optional[Hairstyle]:
        return self._style_by_label.get(self.style_var.get())

    def generate_advice(self) -> None:
        T = self.i18n.translate
        hairstyle = self._selected_style()
        if self.analysis is None or hairstyle is None:
            messagebox.showwarning(T("recommender.title"), T("recommender.missingInfo"))
            return
        self._last_kind = OperationKind.ADVICE_GENERATION
        self._set_status("status.generating")
        self._log("\n" + T("recommender.basedOn", faceShape=self.analysis.face_shape, hairstyle=hairstyle.name))
        self._log(T("recommender.generating"))
        self._submit(
            self.controller.run_advice_generation(self.analysis, hairstyle),
            on_success=lambda r, h=hairstyle: self._handle_advice(r, h),
            on_error=lambda e: self._report_failure(OperationKind.ADVICE_GENERATION, e),
        )

    def _handle_advice(self, advice: AdviceResult, hairstyle: Hairstyle) -> None:
        T = self.i18n.translate
        self.advice = advice
        self._log("\n=== " + T("recommender.title") + " ===")
        sections = advice.sections()
        if sum(1 for body in sections.values() if body) <= 1:
            self._log(advice.text)
        else:
            for name in ADVICE_SECTIONS:
                if sections[name]:
                    self._log("\n" + T("recommender.sections." + name))
                    self._log(sections[name])
        if advice.is_mock:
            self._log("\n" + T("analysis.mockNote"))
        if self.analysis is not None:
            self.history.add(
                HistoryRecord(
                    face_shape=self.analysis.face_shape,
                    hairstyle_name=hairstyle.name,
                    recommendation_text=advice.text,
                )
            )
            self._log(T("history.saved"))
        self._set_status("status.done")
        self._refresh_controls()

    def retry(self) -> None:
        if self._last_kind is OperationKind.FACE_ANALYSIS:
            self.analyze()
        elif self._last_kind is OperationKind.ADVICE_GENERATION:
            self.generate_advice()

    def skip(self) -> None:
        kind = self._last_kind
        if kind is None or not self.controller.state(kind).can_skip:
            return
        if kind is OperationKind.FACE_ANALYSIS:
            self.runner.call(lambda: self._deliver(self.controller.skip_face_analysis, self._handle_analysis))
        else:
            hairstyle = self._selected_style() or HAIRSTYLES[0]
            analysis = self.analysis
            self.runner.call(
                lambda: self._deliver(
                    lambda: self.controller.skip_advice_generation(analysis, hairstyle),
                    lambda r: self._handle_advice(r, hairstyle),
                )
            )

    def _deliver(self, produce: Callable[[], Any], handle: Callable[[Any], None]) -> None:
        # runs on the event loop thread; controller state is only touched there
        result = produce()
        self.after(0, lambda: handle(result))

    def cancel(self) -> None:
        self.runner.call(self.controller.cancel_operation)

    # ---- History ---------------------------------------------------------

    def show_history(self) -> None:
        T = self.i18n.translate
        top = Toplevel(self)
        top.title(T("history.title"))
        top.geometry(HISTORY_WINDOW_SIZE)

        text = ScrolledText(top, font=LOG_FONT)
        text.pack(fill=tk.BOTH, expand=True)

        buttons = tk.Frame(top)
        buttons.pack(fill=tk.X, padx=PAD_X, pady=PAD_Y)
        tk.Button(buttons, text=T("common.close"), command=top.destroy).pack(side=tk.RIGHT)

        records = self.history.records()
        if not records:
            text.insert(tk.END, T("history.empty") + "\n")
        for record in records:
            text.insert(
                tk.END,
                f"{record.timestamp}  {record.face_shape} / {record.hairstyle_name}\n{record.recommendation_text}\n\n",
            )
        usage = self.history.storage_usage()
        text.insert(tk.END, T("storage.usage", size=usage["total_mb"]) + "\n")
        text.see(tk.END)

    def show_journal(self) -> None:
        T = self.i18n.translate
        try:
            rows = read_last(JOURNAL_MAX_RECORDS)
        except OSError as exc:
            messagebox.showerror(T("journal.title"), str(exc))
            return

        top = Toplevel(self)
        top.title(T("journal.title"))
        top.geometry(JOURNAL_WINDOW_SIZE)
        text = ScrolledText(top, font=LOG_FONT)
        text.pack(fill=tk.BOTH, expand=True)

        if not rows:
            text.insert(tk.END, T("journal.empty"))
        for row in rows:
            text.insert(tk.END, json.dumps(row, ensure_ascii=False, indent=2) + "\n\n")
        text.see(tk.END)


__all__ = ["AdvisorGUI", "AsyncRunner", "SettingsDialog"]
