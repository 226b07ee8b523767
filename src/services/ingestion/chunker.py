"""Sliding-window text chunking.

Splits a document's normalized text into fixed-size character windows that
overlap by ``overlap`` characters.  Window *k* starts at ``k * (size -
overlap)``; the last window may be shorter and is never padded.  Once a
window reaches the end of the text no further window is emitted, which
gives ``ceil((len - overlap) / (size - overlap))`` chunks for texts longer
than the overlap and a single chunk otherwise.

Token counts are estimates produced by a pluggable :class:`TokenCounter`.
The default divides the character count by a fixed ratio (4); the optional
:class:`HuggingFaceTokenCounter` uses a real tokenizer when the
``tokenizers`` extra is installed.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import Protocol

import structlog

from src.models.job import TextChunk
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


class TokenCounter(Protocol):
    def count(self, text: str) -> int: ...


class CharRatioTokenCounter:
    """Approximate tokens as ``ceil(len(text) / chars_per_token)``."""

    def __init__(self, chars_per_token: int = 4) -> None:
        if chars_per_token <= 0:
            raise ConfigurationError(
                message=f"chars_per_token must be positive, got {chars_per_token}"
            )
        self._ratio = chars_per_token

    def count(self, text: str) -> int:
        return math.ceil(len(text) / self._ratio)


class HuggingFaceTokenCounter:
    """Exact counts from a HuggingFace ``tokenizers`` vocabulary.

    Requires the ``tokenizers`` extra; the tokenizer is downloaded on
    construction, so build one instance and share it.
    """

    def __init__(self, model_id: str = "bert-base-uncased") -> None:
        from tokenizers import Tokenizer  # type: ignore[import-untyped]

        self._tokenizer = Tokenizer.from_pretrained(model_id)

    def count(self, text: str) -> int:
        return len(self._tokenizer.encode(text).ids)


def _validate_window(size: int, overlap: int) -> None:
    if size <= 0:
        raise ConfigurationError(message=f"Chunk size must be positive, got {size}")
    if overlap < 0:
        raise ConfigurationError(message=f"Chunk overlap must not be negative, got {overlap}")
    if overlap >= size:
        raise ConfigurationError(
            message=f"Chunk overlap ({overlap}) must be smaller than chunk size ({size})"
        )


class TextChunker:
    """Splits text into overlapping fixed-size character windows.

    Parameters
    ----------
    chunk_size:
        Window length in characters (default 512).
    overlap:
        Characters shared by consecutive windows (default 128).
    token_counter:
        Strategy used for each chunk's ``token_count``.

    Raises
    ------
    ConfigurationError
        If ``overlap >= chunk_size`` or either value is out of range.
    """

    def __init__(
        self,
        chunk_size: int = 512,
        overlap: int = 128,
        token_counter: TokenCounter | None = None,
    ) -> None:
        _validate_window(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._token_counter = token_counter or CharRatioTokenCounter()

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(
        self,
        text: str,
        size: int | None = None,
        overlap: int | None = None,
    ) -> Iterator[TextChunk]:
        """Yield the windows of *text* in order.

        The returned generator is single-pass; call ``chunk`` again to
        iterate a second time.  Empty input yields nothing.  Per-call
        ``size``/``overlap`` override the instance defaults and are
        validated before the first chunk is produced.
        """
        size = self._chunk_size if size is None else size
        overlap = self._overlap if overlap is None else overlap
        _validate_window(size, overlap)
        return self._windows(text, size, overlap)

    def _windows(self, text: str, size: int, overlap: int) -> Iterator[TextChunk]:
        step = size - overlap
        length = len(text)
        position = 0
        start = 0
        while start < length:
            end = min(start + size, length)
            piece = text[start:end]
            yield TextChunk(
                position=position,
                text=piece,
                start=start,
                end=end,
                token_count=self._token_counter.count(piece),
            )
            position += 1
            if end >= length:
                break
            start += step

        logger.debug("chunking_complete", num_chunks=position, text_length=length)

    @staticmethod
    def expected_count(length: int, size: int, overlap: int) -> int:
        """Number of chunks :meth:`chunk` produces for a text of *length* chars."""
        if length == 0:
            return 0
        if length <= overlap:
            return 1
        return math.ceil((length - overlap) / (size - overlap))
