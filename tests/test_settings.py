"""Settings tests."""
from __future__ import annotations

from config.settings import Settings, _split_csv


def test_split_csv_drops_blanks() -> None:
    assert _split_csv(" https://a.example/x.md, ,https://b.example/y.txt ") == (
        "https://a.example/x.md",
        "https://b.example/y.txt",
    )
    assert _split_csv(None) == ()


def test_document_urls_cannot_be_mutated_across_instances() -> None:
    assert isinstance(Settings().document_urls, tuple)
