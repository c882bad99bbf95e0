"""
Examples Loader Tests
=====================
"""
import json

from bugbot.services.examples_loader import load_examples


def test_missing_file_yields_no_examples(tmp_path):
    assert load_examples(str(tmp_path / "absent.jsonl")) == []


def test_malformed_lines_skipped_and_capped(tmp_path):
    path = tmp_path / "reports.jsonl"
    lines = [
        json.dumps({"title": "one"}),
        "{not json",
        "",
        json.dumps(["not", "an", "object"]),
        json.dumps({"title": "two"}),
        json.dumps({"title": "three"}),
        json.dumps({"title": "four"}),
    ]
    path.write_text("\n".join(lines), encoding="utf-8")

    examples = load_examples(str(path))
    assert [e["title"] for e in examples] == ["one", "two", "three"]


def test_max_examples_override(tmp_path):
    path = tmp_path / "reports.jsonl"
    path.write_text("\n".join(json.dumps({"title": str(i)}) for i in range(5)), encoding="utf-8")
    assert len(load_examples(str(path), max_examples=1)) == 1
    assert load_examples(str(path), max_examples=0) == []
