"""
Tests for splitting captions into tweet threads
"""

import sys
import os
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from thread_splitter import (
    split_caption,
    format_thread,
    is_valid_tweet,
    ThreadSplitError,
    WordTooLongError,
    ELLIPSIS,
)


def length_oracle(limit):
    """Oracle accepting any text of at most `limit` characters"""
    return lambda text: len(text) <= limit


def weighted_oracle(limit):
    """Oracle where characters outside the basic ranges count double, like Twitter's emoji weighting"""
    return lambda text: sum(2 if ord(char) > 0x10FF else 1 for char in text) <= limit


def strip_ellipses(text):
    if text.startswith(ELLIPSIS):
        text = text[len(ELLIPSIS):]
    if text.endswith(ELLIPSIS):
        text = text[:-len(ELLIPSIS)]
    return text


WIKIPEDIA_SAMPLES = [
    (
        "A yellow-bellied sapsucker (*Sphyrapicus varius*), a medium-sized woodpecker, perched on a tree in Central Park in New York City, New York, USA. These sapsuckers drill neatly organized rows of holes through which it does not \"suck\" the sap, but uses a brush-shaped tongue to lap it up. The red coloring on its head and throat indicates a male.",
        [
            "A yellow-bellied sapsucker (*Sphyrapicus varius*), a medium-sized woodpecker, perched on a tree in Central Park in New York City, New York, USA. These sapsuckers drill neatly organized rows of holes through which it does not \"suck\" the sap, but uses a brush-shaped tongue to...",
            "...lap it up. The red coloring on its head and throat indicates a male.",
        ],
    ),
    (
        "The red-headed myzomela or red-headed honeyeater (Myzomela erythrocephala) is a passerine bird of the honeyeater family Meliphagidae found in Australia, Indonesia, and Papua New Guinea. It was described by John Gould in 1840. Two subspecies are recognised, with the nominate race M. e. erythrocephala distributed around the tropical coastline of Australia, and M. e. infuscata in New Guinea. Though widely distributed, it is not abundant within this range. While the IUCN lists the Australian population of M. e. infuscata as being near threatened, as a whole the widespread range means that its conservation is of least concern.",
        [
            "The red-headed myzomela or red-headed honeyeater (Myzomela erythrocephala) is a passerine bird of the honeyeater family Meliphagidae found in Australia, Indonesia, and Papua New Guinea. It was described by John Gould in 1840. Two subspecies are recognised, with the nominate...",
            "...race M. e. erythrocephala distributed around the tropical coastline of Australia, and M. e. infuscata in New Guinea. Though widely distributed, it is not abundant within this range. While the IUCN lists the Australian population of M. e. infuscata as being near threatened,...",
            "...as a whole the widespread range means that its conservation is of least concern.",
        ],
    ),
    (
        "At 12 cm (4.7 in), it is a small honeyeater with a short tail and relatively long down-curved bill. It is sexually dimorphic; the male has a glossy red head and brown upperparts and paler grey-brown underparts while the female has predominantly grey-brown plumage. Its natural habitat is subtropical or tropical mangrove forests. It is very active when feeding in the tree canopy, darting from flower to flower and gleaning insects off foliage. It calls constantly as it feeds. While little has been documented on the red-headed myzomela's breeding behaviour, it is recorded as building a small cup-shaped nest in the mangroves and laying two or three oval, white eggs with small red blotches.",
        [
            "At 12 cm (4.7 in), it is a small honeyeater with a short tail and relatively long down-curved bill. It is sexually dimorphic; the male has a glossy red head and brown upperparts and paler grey-brown underparts while the female has predominantly grey-brown plumage. Its natural...",
            "...habitat is subtropical or tropical mangrove forests. It is very active when feeding in the tree canopy, darting from flower to flower and gleaning insects off foliage. It calls constantly as it feeds. While little has been documented on the red-headed myzomela's breeding...",
            "...behaviour, it is recorded as building a small cup-shaped nest in the mangroves and laying two or three oval, white eggs with small red blotches.",
        ],
    ),
]


def test_short_caption_is_left_unchanged():
    """Test that a caption which already fits produces a single unchanged tweet"""
    chunks = split_caption("A heron at dusk", is_valid=length_oracle(280))

    assert len(chunks) == 1
    assert chunks[0].text == "A heron at dusk"
    assert chunks[0].number == 1
    assert chunks[0].is_first is True
    assert chunks[0].is_last is True


@pytest.mark.parametrize("char", ["a", "A", ".", "Њ"])
def test_280_characters_are_left_unchanged(char):
    """Test that one continuous 280 character word fits in a single tweet"""
    caption = char * 280

    chunks = split_caption(caption)

    assert format_thread(chunks) == [caption]


def test_whitespace_is_collapsed():
    """Test that runs of whitespace are joined back with single spaces"""
    chunks = split_caption("  A heron\n\nat   dusk\t", is_valid=length_oracle(280))

    assert format_thread(chunks) == ["A heron at dusk"]


def test_greedy_split_with_ellipses():
    """Test that words are packed greedily and chunks are joined by ellipses"""
    chunks = split_caption("one two three four five six seven eight", is_valid=length_oracle(20))

    assert format_thread(chunks) == [
        "one two three...",
        "...four five six...",
        "...seven eight",
    ]


def test_chunk_flags_and_numbering():
    """Test that chunks are numbered in order and only the ends are flagged"""
    chunks = split_caption("one two three four five six seven eight", is_valid=length_oracle(20))

    assert [chunk.number for chunk in chunks] == [1, 2, 3]
    assert [chunk.is_first for chunk in chunks] == [True, False, False]
    assert [chunk.is_last for chunk in chunks] == [False, False, True]


def test_decoration_and_validity_of_long_caption():
    """Test ellipsis placement and per-chunk validity on a caption needing many tweets"""
    oracle = length_oracle(280)
    caption = "word " * 300

    chunks = split_caption(caption, is_valid=oracle)
    texts = format_thread(chunks)

    assert len(texts) > 2
    for text in texts:
        assert oracle(text)

    assert not texts[0].startswith(ELLIPSIS)
    assert texts[0].endswith(ELLIPSIS)
    assert texts[-1].startswith(ELLIPSIS)
    assert not texts[-1].endswith(ELLIPSIS)
    for text in texts[1:-1]:
        assert text.startswith(ELLIPSIS)
        assert text.endswith(ELLIPSIS)


def test_words_are_consumed_in_order():
    """Test that the words of all chunks join back into the original caption"""
    caption = " ".join(f"word{i}" for i in range(200))

    chunks = split_caption(caption, is_valid=length_oracle(100))

    words = []
    for chunk in chunks:
        words.extend(strip_ellipses(chunk.text).split())
    assert words == caption.split()


def test_oracle_sees_decorated_candidates():
    """Test that every emitted tweet was checked by the oracle with its ellipses included"""
    checked = []

    def recording_oracle(text):
        checked.append(text)
        return len(text) <= 20

    chunks = split_caption("one two three four five six seven eight", is_valid=recording_oracle)

    for chunk in chunks:
        assert chunk.text in checked


def test_commas_are_split_like_twitter():
    """Test the first tweet for 100 copies of ',,,  ' against the real tweet rules"""
    chunks = split_caption(",,,  " * 100)

    assert chunks[0].text == " ".join([",,,"] * 69) + "..."


def test_weighted_characters_are_split():
    """Test that an oracle weighting emoji as two units splits 100 emoji words after 92"""
    caption = "👾 " * 100

    chunks = split_caption(caption, is_valid=weighted_oracle(280))
    texts = format_thread(chunks)

    assert texts[0] == " ".join(["👾"] * 92) + "..."
    assert texts[-1] == "..." + " ".join(["👾"] * 8)


@pytest.mark.parametrize("caption, expected", WIKIPEDIA_SAMPLES)
def test_wikipedia_descriptions(caption, expected):
    """Test real picture of the day descriptions against the real tweet rules"""
    assert format_thread(split_caption(caption)) == expected


def test_word_too_long_raises():
    """Test that a word which cannot fit in a tweet on its own aborts the split"""
    with pytest.raises(WordTooLongError) as exc_info:
        split_caption("short extraordinarily long", is_valid=length_oracle(10))

    assert exc_info.value.word == "extraordinarily"
    assert exc_info.value.candidate == "...extraordinarily..."


def test_first_word_too_long_raises():
    """Test that an oversized first word aborts before anything is produced"""
    with pytest.raises(WordTooLongError):
        split_caption("x" * 300, is_valid=length_oracle(280))


def test_no_progress_raises():
    """Test that an oracle which never lets the last word through stops the split"""
    # Accepts text only when it ends with an ellipsis, so the final word can never be placed
    oracle = lambda text: text.endswith(ELLIPSIS)

    with pytest.raises(ThreadSplitError) as exc_info:
        split_caption("hello", is_valid=oracle)

    assert not isinstance(exc_info.value, WordTooLongError)


def test_empty_caption_raises():
    """Test that an empty caption is rejected"""
    with pytest.raises(ThreadSplitError):
        split_caption("   \n ", is_valid=length_oracle(280))


def test_logger_is_used():
    """Test that progress is reported to the given logger"""
    mock_logger = MagicMock()

    split_caption("one two three four five six seven eight", is_valid=length_oracle(20), logger=mock_logger)

    assert mock_logger.info.called


def test_is_valid_tweet():
    """Test the real tweet length rules at the 280 character boundary"""
    assert is_valid_tweet("a" * 280) is True
    assert is_valid_tweet("a" * 281) is False


def test_format_thread_orders_by_number():
    """Test that format_thread returns texts in posting order"""
    chunks = split_caption("one two three four five six seven eight", is_valid=length_oracle(20))

    assert format_thread(list(reversed(chunks))) == [chunk.text for chunk in chunks]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
