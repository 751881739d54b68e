"""
Transcript stitching across overlapping chunks.

Neighbouring chunks share a stretch of audio, so the model usually emits the
same few words at the end of one fragment and the start of the next. The
stitcher removes that duplication with a bounded suffix/prefix word match:

    prev: "... the quick brown fox"
    new:  "brown fox jumps over"
    ->    "... the quick brown fox jumps over"   (overlap = 'brown fox')

This is a heuristic. Comparison ignores case and leading/trailing
punctuation, only the immediately preceding fragment is consulted, and the
search is capped at ``search_window_words`` so a coincidental long repeat
far from the boundary is never considered. When nothing matches the whole
fragment is appended after a single space.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from typing import Union

from .buffers import Transcript, TranscriptFragment
from .exceptions import OutOfOrderError


def _strip_punctuation(word: str) -> str:
    start, end = 0, len(word)
    while start < end and unicodedata.category(word[start]).startswith("P"):
        start += 1
    while end > start and unicodedata.category(word[end - 1]).startswith("P"):
        end -= 1
    return word[start:end]


def normalize_word(word: str) -> str:
    """Comparison key for a word: casefolded, outer punctuation removed.

    "Fox," and "fox" compare equal; "don't" keeps its apostrophe.
    """
    return _strip_punctuation(unicodedata.normalize("NFC", word)).casefold()


def find_overlap(
    prev_words: list[str],
    new_words: list[str],
    search_window_words: int,
    min_match_words: int = 2,
) -> int:
    """
    Length of the longest suffix of prev_words equal to a prefix of new_words.

    Only lengths in [min_match_words, search_window_words] are tried, longest
    first. Returns 0 when nothing in that range matches.
    """
    max_scan = min(search_window_words, len(prev_words), len(new_words))
    if max_scan < min_match_words:
        return 0
    prev_keys = [normalize_word(w) for w in prev_words[-max_scan:]]
    new_keys = [normalize_word(w) for w in new_words[:max_scan]]
    for k in range(max_scan, min_match_words - 1, -1):
        if prev_keys[-k:] == new_keys[:k]:
            return k
    return 0


class TranscriptStitcher:
    """Incremental fold of transcript fragments in chunk order.

    Fragments must be fed with consecutive indices starting at 0. A
    search window of 0 turns matching off: every fragment is appended whole,
    which is what chunks cut without overlap need.
    """

    def __init__(self, search_window_words: int, min_match_words: int = 2):
        if min_match_words < 1:
            raise ValueError(f"min_match_words must be >= 1, got {min_match_words}")
        if search_window_words < 0:
            raise ValueError(f"search_window_words must be >= 0, got {search_window_words}")
        if 0 < search_window_words < min_match_words:
            raise ValueError(
                f"search_window_words ({search_window_words}) must be >= "
                f"min_match_words ({min_match_words})"
            )
        self.search_window_words = search_window_words
        self.min_match_words = min_match_words
        self._parts: list[str] = []
        self._prev_words: list[str] = []
        self._consumed = 0
        self._merged = 0
        self._fallbacks = 0

    @property
    def next_index(self) -> int:
        return self._consumed

    def feed(self, fragment: TranscriptFragment) -> None:
        if fragment.index != self._consumed:
            raise OutOfOrderError(self._consumed, fragment.index)

        text = (fragment.text or "").strip()
        self._consumed += 1

        if not text:
            self._prev_words = []
            return

        new_words = text.split()
        if not self._parts:
            self._parts.append(text)
        elif not self._prev_words or not self.search_window_words:
            self._parts.append(" " + text)
        else:
            k = find_overlap(
                self._prev_words,
                new_words,
                self.search_window_words,
                self.min_match_words,
            )
            if k:
                self._merged += 1
                remainder = new_words[k:]
                if remainder:
                    self._parts.append(" " + " ".join(remainder))
            else:
                self._fallbacks += 1
                self._parts.append(" " + text)

        self._prev_words = new_words

    def result(self) -> Transcript:
        return Transcript(
            text="".join(self._parts),
            fragment_count=self._consumed,
            merged_overlaps=self._merged,
            fallback_joins=self._fallbacks,
        )


def stitch(
    fragments: Iterable[Union[TranscriptFragment, str]],
    search_window_words: int,
    min_match_words: int = 2,
) -> Transcript:
    """
    Stitch fragments into one transcript.

    Plain strings are numbered in iteration order; TranscriptFragment objects
    keep their own index and must already be in order.

    Raises:
        OutOfOrderError: If a fragment index does not follow its predecessor
    """
    stitcher = TranscriptStitcher(search_window_words, min_match_words)
    for position, fragment in enumerate(fragments):
        if isinstance(fragment, str):
            fragment = TranscriptFragment(index=position, text=fragment)
        stitcher.feed(fragment)
    return stitcher.result()
