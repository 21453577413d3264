"""
Unit tests for text processing: clean_text and the recursive chunk_text splitter.
"""

import pytest

from app.services.text_processing import chunk_text, clean_text


class TestCleanText:
    """Tests for clean_text()."""

    def test_empty_returns_empty(self) -> None:
        assert clean_text("") == ""
        assert clean_text(" \t ") == ""

    def test_strips_lines_and_collapses_blank_runs(self) -> None:
        assert clean_text("  intro  \n\n\n\n  body  ") == "intro\n\nbody"

    def test_drops_consecutive_duplicate_lines(self) -> None:
        # Repeated PDF headers on consecutive lines
        assert clean_text("Header\n  Header \nContent") == "Header\nContent"

    def test_keeps_non_consecutive_duplicates(self) -> None:
        assert clean_text("a\nb\na") == "a\nb\na"

    def test_control_chars_become_spaces(self) -> None:
        assert clean_text("bullet\x7fitem") == "bullet item"

    def test_nfkc_folds_compatibility_forms(self) -> None:
        assert clean_text("ｆｕｌｌ ｗｉｄｔｈ") == "full width"


class TestChunkText:
    """Tests for chunk_text()."""

    def test_empty_returns_empty_list(self) -> None:
        assert chunk_text("") == []
        assert chunk_text("\n\n  ") == []

    def test_short_text_is_one_chunk(self) -> None:
        assert chunk_text("A short note.", chunk_size=100, overlap=10) == ["A short note."]

    def test_chunks_respect_size(self) -> None:
        text = " ".join(f"word{i}" for i in range(300))
        chunks = chunk_text(text, chunk_size=100, overlap=20)
        assert len(chunks) > 1
        assert all(len(c) <= 100 for c in chunks)

    def test_neighbouring_chunks_overlap(self) -> None:
        text = " ".join(f"w{i:03d}" for i in range(100))
        chunks = chunk_text(text, chunk_size=50, overlap=15)
        for left, right in zip(chunks, chunks[1:]):
            tail_word = left.split(" ")[-1]
            assert tail_word in right.split(" ")

    def test_no_words_lost(self) -> None:
        words = [f"w{i:03d}" for i in range(100)]
        chunks = chunk_text(" ".join(words), chunk_size=50, overlap=10)
        seen = {w for c in chunks for w in c.split(" ")}
        assert seen == set(words)

    def test_prefers_paragraph_breaks(self) -> None:
        para_a = "Alpha " * 10
        para_b = "Beta " * 10
        chunks = chunk_text(f"{para_a.strip()}\n\n{para_b.strip()}", chunk_size=70, overlap=0)
        assert chunks == [para_a.strip(), para_b.strip()]

    def test_long_word_is_split_by_characters(self) -> None:
        chunks = chunk_text("x" * 25, chunk_size=10, overlap=0)
        assert "".join(chunks) == "x" * 25
        assert all(len(c) <= 10 for c in chunks)

    def test_overlap_must_be_smaller_than_chunk_size(self) -> None:
        with pytest.raises(ValueError):
            chunk_text("text", chunk_size=10, overlap=10)
