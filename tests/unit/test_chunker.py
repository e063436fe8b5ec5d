"""Unit tests for the chunker module."""

import math

import pytest

from hybrid_kb.ingestion.chunker import estimate_tokens, make_chunks, normalize_text

LOREM = (
    "Lorem ipsum dolor sit amet, consectetur adipiscing elit.  Sed do eiusmod\n"
    "tempor incididunt ut labore et dolore magna aliqua.\tUt enim ad minim veniam, "
    "quis nostrud exercitation ullamco laboris nisi ut aliquip ex ea commodo consequat. "
) * 12


def _reconstruct(chunks, overlap: int) -> str:
    text = chunks[0].content
    for chunk in chunks[1:]:
        text += chunk.content[overlap:]
    return text


@pytest.mark.parametrize("size,overlap", [(50, 10), (100, 0), (7, 3), (1200, 200)])
def test_chunks_reconstruct_normalized_text(size: int, overlap: int) -> None:
    """Dropping each later chunk's overlap prefix gives back the input."""
    chunks = make_chunks(LOREM, size, overlap)
    assert _reconstruct(chunks, overlap) == normalize_text(LOREM)


def test_chunks_are_bounded_and_ordered() -> None:
    chunks = make_chunks(LOREM, 64, 16)
    assert [c.ordinal for c in chunks] == list(range(len(chunks)))
    assert all(len(c.content) <= 64 for c in chunks)
    assert all(len(c.content) == 64 for c in chunks[:-1])


def test_chunking_is_deterministic() -> None:
    assert make_chunks(LOREM, 80, 20) == make_chunks(LOREM, 80, 20)


def test_token_estimate_is_ceil_of_quarter_length() -> None:
    for chunk in make_chunks(LOREM, 97, 13):
        assert chunk.token_estimate == math.ceil(len(chunk.content) / 4)
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcde") == 2


@pytest.mark.parametrize("text", ["", "   \n\t  ", None])
def test_empty_input_yields_no_chunks(text) -> None:
    assert make_chunks(text, 100, 10) == []


def test_short_qa_is_a_single_chunk() -> None:
    """A short Q/A pair stays in one chunk equal to its normalized text."""
    text = "What is your SLA?\n\nWe guarantee 99.9% uptime."
    chunks = make_chunks(text, 1200, 200)

    assert len(chunks) == 1
    assert chunks[0].ordinal == 0
    assert chunks[0].content == "What is your SLA? We guarantee 99.9% uptime."
    assert chunks[0].token_estimate == math.ceil(len(chunks[0].content) / 4)


def test_overlap_not_smaller_than_size_still_advances() -> None:
    chunks = make_chunks("abcdefghij", 3, 5)
    assert [c.content for c in chunks][:3] == ["abc", "bcd", "cde"]
    assert chunks[-1].content.endswith("j")


def test_negative_overlap_counts_as_zero() -> None:
    chunks = make_chunks("abcdefgh", 4, -2)
    assert [c.content for c in chunks] == ["abcd", "efgh"]


def test_invalid_size_raises() -> None:
    with pytest.raises(ValueError, match="chunk size"):
        make_chunks("text", 0, 0)
