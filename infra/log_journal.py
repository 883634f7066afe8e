# -*- coding: utf-8 -*-
"""
AI call journal (JSONL): one record per line.
Keeps timing and token metrics of every prompt sent to the model.

By default the file lives at <data dir>/logs/ai_journal.jsonl
(see config.JOURNAL_FILE).
"""

from __future__ import annotations
import os
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from infra.config import JOURNAL_FILE

# === Price table (USD per 1M tokens) ===
# Models missing from the table simply get no cost estimate.
PRICE_TABLE = {
    "gpt-4.1-mini": {"input": 0.4, "output": 1.6},
    "gpt-4.1-nano": {"input": 0.1, "output": 0.4},
}


def _iso_now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _estimate_cost_usd(model: Optional[str], input_tokens: Optional[int], output_tokens: Optional[int]) -> Optional[float]:
    if not model or model not in PRICE_TABLE:
        return None
    input_rate = PRICE_TABLE[model].get("input")
    output_rate = PRICE_TABLE[model].get("output")
    if input_rate is None or output_rate is None:
        return None
    itok = float(input_tokens or 0)
    otok = float(output_tokens or 0)
    return round((itok / 1_000_000.0) * input_rate + (otok / 1_000_000.0) * output_rate, 6)


def append_log(record: Dict[str, Any], path: str = JOURNAL_FILE) -> None:
    """Appends an arbitrary record to the journal as one JSON line."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        json.dump(record, f, ensure_ascii=False)
        f.write("\n")


def append_prompt_entry(
    *,
    purpose: str,
    model: Optional[str],
    elapsed_sec: float,
    input_tokens: Optional[int] = None,
    output_tokens: Optional[int] = None,
    total_tokens: Optional[int] = None,
    ok: bool = True,
    error: Optional[str] = None,
    path: str = JOURNAL_FILE,
) -> None:
    """Records one call to the Responses API (face analysis, advice, translation, detection)."""
    entry = {
        "ts": _iso_now(),
        "phase": "prompt",
        "purpose": purpose,
        "model": model,
        "ok": ok,
        "response": {
            "elapsed_sec": round(float(elapsed_sec), 3),
            "input_tokens": int(input_tokens) if input_tokens is not None else None,
            "output_tokens": int(output_tokens) if output_tokens is not None else None,
            "total_tokens": int(total_tokens) if total_tokens is not None else None,
            "cost_usd_est": _estimate_cost_usd(model, input_tokens, output_tokens),
        },
    }
    if error:
        entry["error"] = error
    append_log(entry, path=path)


def read_last(n: int = 50, path: str = JOURNAL_FILE) -> List[Dict[str, Any]]:
    """Reads the last n journal records."""
    if not os.path.exists(path):
        return []
    with open(path, "r", encoding="utf-8") as f:
        lines = f.readlines()
    lines = lines[-n:]
    out: List[Dict[str, Any]] = []
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            out.append(json.loads(line))
        except ValueError:
            continue
    return out
