"""Unit tests for the TextChunker sliding window."""

from __future__ import annotations

import pytest

from src.services.ingestion.chunker import CharRatioTokenCounter, TextChunker
from src.utils.errors import ConfigurationError


class TestWindowPositions:
    def test_documented_example(self) -> None:
        chunker = TextChunker(chunk_size=10, overlap=3)
        text = "abcdefghijklmnopqrstuvwxy"  # 25 chars

        chunks = list(chunker.chunk(text))

        assert [c.start for c in chunks] == [0, 7, 14, 21]
        assert [c.end for c in chunks] == [10, 17, 24, 25]
        assert [c.position for c in chunks] == [0, 1, 2, 3]
        assert chunks[-1].text == "vwxy"

    def test_consecutive_chunks_share_overlap(self) -> None:
        chunker = TextChunker(chunk_size=10, overlap=3)
        chunks = list(chunker.chunk("x" * 7 + "abc" + "y" * 20))

        for left, right in zip(chunks, chunks[1:]):
            assert left.text[-3:] == right.text[:3]

    def test_windows_cover_whole_text(self) -> None:
        text = "The quick brown fox jumps over the lazy dog. " * 7
        chunks = list(TextChunker(chunk_size=50, overlap=12).chunk(text))

        rebuilt = chunks[0].text + "".join(c.text[12:] for c in chunks[1:])
        assert rebuilt == text

    @pytest.mark.parametrize(
        ("length", "size", "overlap"),
        [(25, 10, 3), (10, 10, 3), (11, 10, 3), (100, 7, 0), (3, 10, 3), (2, 10, 3), (512, 512, 128)],
    )
    def test_count_matches_formula(self, length: int, size: int, overlap: int) -> None:
        chunks = list(TextChunker(chunk_size=size, overlap=overlap).chunk("a" * length))
        assert len(chunks) == TextChunker.expected_count(length, size, overlap)


class TestEdgeCases:
    def test_empty_text_yields_nothing(self) -> None:
        assert list(TextChunker(chunk_size=10, overlap=3).chunk("")) == []

    def test_text_shorter_than_overlap_is_one_chunk(self) -> None:
        chunks = list(TextChunker(chunk_size=10, overlap=5).chunk("abc"))
        assert len(chunks) == 1
        assert chunks[0].text == "abc"

    def test_text_equal_to_size_is_one_chunk(self) -> None:
        chunks = list(TextChunker(chunk_size=10, overlap=3).chunk("a" * 10))
        assert len(chunks) == 1

    def test_per_call_override(self) -> None:
        chunker = TextChunker(chunk_size=100, overlap=10)
        chunks = list(chunker.chunk("a" * 25, size=10, overlap=3))
        assert len(chunks) == 4

    def test_chunk_is_lazy(self) -> None:
        chunker = TextChunker(chunk_size=10, overlap=3)
        generator = chunker.chunk("a" * 1000)
        first = next(iter(generator))
        assert first.position == 0


class TestValidation:
    @pytest.mark.parametrize(("size", "overlap"), [(10, 10), (10, 11), (0, 0), (-5, 0), (10, -1)])
    def test_invalid_window_at_construction(self, size: int, overlap: int) -> None:
        with pytest.raises(ConfigurationError):
            TextChunker(chunk_size=size, overlap=overlap)

    def test_invalid_override_raises_before_iterating(self) -> None:
        chunker = TextChunker(chunk_size=10, overlap=3)
        with pytest.raises(ConfigurationError):
            chunker.chunk("abc", size=5, overlap=5)


class TestTokenCounts:
    def test_default_counter_is_char_ratio(self) -> None:
        chunks = list(TextChunker(chunk_size=10, overlap=0).chunk("a" * 10))
        assert chunks[0].token_count == 3  # ceil(10 / 4)

    def test_custom_counter(self) -> None:
        class WordCounter:
            def count(self, text: str) -> int:
                return len(text.split())

        chunker = TextChunker(chunk_size=100, overlap=0, token_counter=WordCounter())
        chunks = list(chunker.chunk("one two three"))
        assert chunks[0].token_count == 3

    def test_char_ratio_rejects_zero(self) -> None:
        with pytest.raises(ConfigurationError):
            CharRatioTokenCounter(chars_per_token=0)
