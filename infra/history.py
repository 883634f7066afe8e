# -*- coding: utf-8 -*-
"""Analysis history kept in the local store, newest record first."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from infra.config import HISTORY_MAX_RECORDS
from infra.models import HistoryRecord
from infra.settings import HISTORY_KEY, LocalStore

logger = logging.getLogger(__name__)


class AnalysisHistory:
    def __init__(self, store: LocalStore, max_records: int = HISTORY_MAX_RECORDS) -> None:
        self._store = store
        self.max_records = max_records

    def _raw(self) -> List[Dict[str, Any]]:
        data = self._store.get(HISTORY_KEY, [])
        return data if isinstance(data, list) else []

    def records(self) -> List[HistoryRecord]:
        out: List[HistoryRecord] = []
        for item in self._raw():
            try:
                out.append(HistoryRecord.model_validate(item))
            except ValidationError:
                logger.debug("Skipping malformed history record %r", item)
        return out

    def _save(self, records: List[HistoryRecord]) -> None:
        payload = [r.model_dump(by_alias=True) for r in records[: self.max_records]]
        self._store.set(HISTORY_KEY, payload)

    def add(self, record: HistoryRecord) -> List[HistoryRecord]:
        records = [record] + self.records()
        self._save(records)
        return records[: self.max_records]

    def clear(self) -> None:
        self._store.remove(HISTORY_KEY)

    def export_json(self) -> str:
        return json.dumps(
            [r.model_dump(by_alias=True) for r in self.records()],
            ensure_ascii=False,
            indent=2,
        )

    def import_json(self, payload: str) -> bool:
        """Replaces the history. Anything but a list of valid records is rejected."""
        try:
            data = json.loads(payload)
        except ValueError as exc:
            logger.warning("History import rejected: %s", exc)
            return False
        if not isinstance(data, list):
            logger.warning("History import rejected: expected a JSON list")
            return False
        try:
            records = [HistoryRecord.model_validate(item) for item in data]
        except ValidationError as exc:
            logger.warning("History import rejected: %s", exc)
            return False
        self._save(records)
        return True

    def storage_usage(self) -> Dict[str, Any]:
        total = self._store.size_bytes(HISTORY_KEY)
        total_mb = "{:.2f}".format(total / (1024 * 1024))
        return {"total_bytes": total, "total_mb": total_mb}


__all__ = ["AnalysisHistory"]
