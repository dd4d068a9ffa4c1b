"""
Thread Splitter
Splits a picture-of-the-day caption into a thread of tweet-sized chunks.
"""

import logging
from typing import Callable, List, NamedTuple, Optional

from twitter_text import parse_tweet

# Continuation marker placed at the end of a chunk that continues into the next
# one, and at the start of a chunk that continues from the previous one
ELLIPSIS = "..."
WORD_SEPARATOR = " "


class ThreadSplitError(Exception):
    """Raised when a caption cannot be split into a valid thread."""


class WordTooLongError(ThreadSplitError):
    """Raised when a single word cannot fit in a tweet, even on its own."""

    def __init__(self, word: str, candidate: str):
        super().__init__(f"Word cannot fit into a tweet by itself: {word!r}")
        self.word = word
        self.candidate = candidate


class ThreadChunk(NamedTuple):
    number: int
    text: str
    is_first: bool
    is_last: bool


def is_valid_tweet(text: str) -> bool:
    """
    Check whether text can be posted as a single tweet.

    Uses Twitter's own weighted length rules (URLs, emoji and CJK characters
    are not counted as one unit each).
    """
    return parse_tweet(text).valid


def _join_words(words: List[str]) -> str:
    return WORD_SEPARATOR.join(words)


def split_caption(caption: str,
                  is_valid: Callable[[str], bool] = is_valid_tweet,
                  logger: Optional[logging.Logger] = None) -> List[ThreadChunk]:
    """
    Split a caption into an ordered list of chunks that can each be posted as a tweet.

    Words are packed greedily into each chunk. Every chunk except the first starts
    with an ellipsis and every chunk except the last ends with one. The validity
    check is always run on the fully decorated text, since the ellipses take up
    space too.

    Args:
        caption: Full caption text. Whitespace runs are collapsed to single spaces.
        is_valid: Predicate deciding whether a candidate string fits in one tweet
        logger: Logger to report progress to (defaults to this module's logger)

    Returns:
        List of thread chunks in posting order

    Raises:
        WordTooLongError: If a single word cannot fit in a tweet with its ellipses
        ThreadSplitError: If the caption is empty or the split stops making progress
    """
    log = logger or logging.getLogger(__name__)
    log.info(f"Splitting caption into tweets: {caption!r}")

    remaining_words = caption.split()
    if not remaining_words:
        log.error("Caption is empty, nothing to post")
        raise ThreadSplitError("Caption is empty")

    texts: List[str] = []
    previous_word_count = len(remaining_words) + 1
    leading_ellipsis = ""

    while True:
        # Try to fit everything that is left into one final tweet
        remainder = leading_ellipsis + _join_words(remaining_words)
        if is_valid(remainder):
            texts.append(remainder)
            log.info(f"Generated final tweet: {remainder!r}")
            break

        # The first word must fit on its own, otherwise the loop can never make progress
        first_word = remaining_words[0]
        valid_tweet = leading_ellipsis + first_word + ELLIPSIS
        if not is_valid(valid_tweet):
            log.error(f"Word cannot fit into a tweet by itself: {first_word!r} (tweet: {valid_tweet!r})")
            raise WordTooLongError(first_word, valid_tweet)

        current_words: List[str] = []
        while remaining_words:
            # The very last word closes the thread, so it does not need a trailing ellipsis
            trailing_ellipsis = "" if len(remaining_words) == 1 else ELLIPSIS

            candidate = leading_ellipsis + _join_words(current_words + [remaining_words[0]]) + trailing_ellipsis
            if not is_valid(candidate):
                break

            current_words.append(remaining_words.pop(0))
            valid_tweet = candidate

        texts.append(valid_tweet)
        log.info(f"Generated one more tweet: {valid_tweet!r}")

        # Every tweet after the first continues from the previous one
        leading_ellipsis = ELLIPSIS

        if len(remaining_words) >= previous_word_count:
            log.error(
                f"Word count did not decrease while splitting caption "
                f"({len(remaining_words)} left, previously {previous_word_count}); tweets so far: {texts}"
            )
            raise ThreadSplitError("Caption split stopped making progress")
        previous_word_count = len(remaining_words)

    log.info(f"Finished splitting caption into {len(texts)} tweet(s)")

    return [
        ThreadChunk(
            number=index + 1,
            text=text,
            is_first=index == 0,
            is_last=index == len(texts) - 1,
        )
        for index, text in enumerate(texts)
    ]


def format_thread(chunks: List[ThreadChunk]) -> List[str]:
    """Return the chunk texts in posting order."""
    return [chunk.text for chunk in sorted(chunks, key=lambda chunk: chunk.number)]
