from __future__ import annotations

from infra.settings import LocalStore, translation_key


def test_values_persist_across_instances(tmp_path) -> None:
    path = str(tmp_path / "nested" / "store.json")
    LocalStore(path=path).set("preferred-language", "fr")
    assert LocalStore(path=path).get("preferred-language") == "fr"


def test_remove_and_keys(store) -> None:
    store.set(translation_key("fr"), {"a": "b"})
    store.set(translation_key("de"), {"a": "c"})
    store.set("other", 1)

    assert sorted(store.keys("translation-")) == ["translation-de", "translation-fr"]
    assert store.remove("other") is True
    assert store.remove("other") is False
    assert store.get("other", "missing") == "missing"


def test_corrupted_file_reads_as_defaults(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{ not json", encoding="utf-8")
    store = LocalStore(path=str(path), defaults={"preferred-language": "en"})
    assert store.get("preferred-language") == "en"
    assert store.keys() == ["preferred-language"]


def test_size_bytes_counts_serialized_utf8(store) -> None:
    assert store.size_bytes("history") == 0
    store.set("history", ["é"])
    assert store.size_bytes("history") == len('["é"]'.encode("utf-8"))
