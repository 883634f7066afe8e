from __future__ import annotations

import io
import json

import pytest

import cli
from infra.history import AnalysisHistory
from infra.localization import ENGLISH_TRANSLATIONS
from infra.log_journal import append_prompt_entry


def _english(key, default=None, **params):
    return ENGLISH_TRANSLATIONS.get(key, default or key)


def _args(*argv: str):
    return cli.build_parser(_english).parse_args(list(argv))


@pytest.fixture
def photo(tmp_path) -> str:
    path = tmp_path / "me.jpg"
    path.write_bytes(b"\xff\xd8\xff\xe0fake")
    return str(path)


@pytest.mark.asyncio
async def test_offline_analyze_skips_to_demo_results(store, photo, capsys) -> None:
    code = await cli.run(_args("--offline", "analyze", photo, "--skip-on-failure"), store)

    out = capsys.readouterr().out
    assert code == 0
    assert "On-device AI is not available." in out
    assert "Face shape: Oval" in out
    assert "Demo data" in out
    records = AnalysisHistory(store).records()
    assert len(records) == 1
    assert records[0].face_shape == "Oval"


@pytest.mark.asyncio
async def test_offline_analyze_without_skip_gives_up(store, photo, monkeypatch) -> None:
    monkeypatch.setattr("sys.stdin", io.StringIO())
    code = await cli.run(_args("--offline", "analyze", photo), store)
    assert code == 2
    assert AnalysisHistory(store).records() == []


@pytest.mark.asyncio
async def test_missing_photo(store, tmp_path) -> None:
    code = await cli.run(_args("--offline", "analyze", str(tmp_path / "nope.jpg")), store)
    assert code == 1


@pytest.mark.asyncio
async def test_styles_for_face_shape(store, capsys) -> None:
    code = await cli.run(_args("--offline", "styles", "--face-shape", "Heart"), store)
    out = capsys.readouterr().out
    assert code == 0
    assert "[5] Pixie Cut" in out
    assert "Big Waves" not in out


@pytest.mark.asyncio
async def test_styles_filter_by_tag_and_difficulty(store, capsys) -> None:
    code = await cli.run(_args("--offline", "styles", "--tag", "curly", "--difficulty", "hard"), store)
    out = capsys.readouterr().out
    assert code == 0
    assert "Vintage Curls" in out
    assert "Big Waves" not in out
    assert "Showing 1 of 8 hairstyles" in out


@pytest.mark.asyncio
async def test_styles_search_within_face_shape(store, capsys) -> None:
    await cli.run(_args("--offline", "styles", "--face-shape", "Round", "--search", "WAVES"), store)
    out = capsys.readouterr().out
    assert "Big Waves" in out
    assert "Lob" not in out
    assert "Showing 1 of 4 hairstyles" in out


def test_styles_rejects_unknown_tag_and_difficulty() -> None:
    with pytest.raises(SystemExit):
        _args("styles", "--tag", "no-such-tag")
    with pytest.raises(SystemExit):
        _args("styles", "--difficulty", "extreme")


@pytest.mark.asyncio
async def test_languages_lists_current(store, capsys) -> None:
    await cli.run(_args("--offline", "languages"), store)
    out = capsys.readouterr().out
    assert "* en" in out
    assert "zh-CN" in out


@pytest.mark.asyncio
async def test_offline_language_switch_falls_back(store, capsys) -> None:
    await cli.run(_args("--offline", "--language", "fr", "languages"), store)
    out = capsys.readouterr().out
    assert "Showing English instead." in out
    assert "* en" in out


@pytest.mark.asyncio
async def test_history_export_import_clear(store, photo, tmp_path, capsys) -> None:
    await cli.run(_args("--offline", "analyze", photo, "--skip-on-failure"), store)
    export_path = str(tmp_path / "history.json")

    assert await cli.run(_args("--offline", "history", "--export", export_path), store) == 0
    with open(export_path, encoding="utf-8") as fp:
        assert json.load(fp)[0]["faceShape"] == "Oval"

    assert await cli.run(_args("--offline", "history", "--clear"), store) == 0
    assert AnalysisHistory(store).records() == []

    assert await cli.run(_args("--offline", "history", "--import", export_path), store) == 0
    assert len(AnalysisHistory(store).records()) == 1

    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2]", encoding="utf-8")
    assert await cli.run(_args("--offline", "history", "--import", str(bad)), store) == 1


@pytest.mark.asyncio
async def test_journal_lists_latest_calls(store, tmp_path, monkeypatch, capsys) -> None:
    journal = str(tmp_path / "logs" / "ai_journal.jsonl")
    monkeypatch.setattr(cli, "JOURNAL_FILE", journal)

    assert await cli.run(_args("--offline", "journal"), store) == 0
    assert "No AI calls recorded yet." in capsys.readouterr().out

    append_prompt_entry(purpose="translate", model="gpt-4.1-mini", elapsed_sec=0.5, total_tokens=40, path=journal)
    append_prompt_entry(purpose="face", model="gpt-4.1-mini", elapsed_sec=2.0, ok=False, error="HTTP 500", path=journal)

    assert await cli.run(_args("--offline", "journal", "--last", "1"), store) == 0
    out = capsys.readouterr().out
    assert "face" in out
    assert "FAILED" in out
    assert "HTTP 500" in out
    assert "translate" not in out
