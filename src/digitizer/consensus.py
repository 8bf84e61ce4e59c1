"""
Cross-pass consensus for the medical record digitizer.

Provides:
- Normalized edit similarity
- Word-level voting across recognition passes
"""

import logging
import re
from collections import Counter
from typing import List, Sequence

from rapidfuzz.distance import Levenshtein

from .recognition import PassResult

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r'(\s+)')


def similarity(a: str, b: str) -> float:
    """
    Normalized edit similarity: ``1 - distance / max(len(a), len(b))``.

    Two empty strings are identical (1.0).
    """
    if not a and not b:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / max(len(a), len(b))


def longest_pass(passes: Sequence[PassResult]) -> str:
    """Text of the longest pass; the first one wins on equal length."""
    if not passes:
        return ""
    return max(passes, key=lambda p: len(p.text)).text


def combine(
    passes: Sequence[PassResult],
    confidence_floor: float = 30.0,
    similarity_threshold: float = 0.8,
    min_votes: int = 2,
    min_token_length: int = 3
) -> str:
    """
    Merge several recognition passes into one transcript.

    Passes below ``confidence_floor`` are discarded; if none remain, the
    longest raw pass is returned unmodified. Otherwise the longest
    surviving pass is the base, and each of its words is replaced by the
    most frequent similar word seen across surviving passes when that word
    occurs at least ``min_votes`` times. This is a voting scheme, not an
    alignment: ties go to the base word.

    Args:
        passes: Recognition passes
        confidence_floor: Minimum raw confidence (0-100) for a pass to vote
        similarity_threshold: Similarity a word must exceed to be a candidate
        min_votes: Occurrences a candidate needs to replace a base word
        min_token_length: Shorter words neither vote nor get replaced

    Returns:
        Consensus transcript ("" when there are no passes)
    """
    if not passes:
        return ""

    surviving = [p for p in passes if p.raw_confidence >= confidence_floor]
    if not surviving:
        logger.info(f"No pass reached confidence {confidence_floor}, using longest raw pass")
        return longest_pass(passes)

    if len(surviving) == 1:
        return surviving[0].text

    base = longest_pass(surviving)

    # Counter keeps first-seen order, which breaks remaining ties
    votes = Counter()
    for p in surviving:
        for token in p.text.split():
            if len(token) >= min_token_length:
                votes[token] += 1

    pieces = _WHITESPACE.split(base)
    replaced = 0
    for i, token in enumerate(pieces):
        if not token or token.isspace() or len(token) < min_token_length:
            continue
        winner = _vote(token, votes, similarity_threshold, min_votes)
        if winner != token:
            pieces[i] = winner
            replaced += 1

    logger.debug(f"Consensus over {len(surviving)} passes replaced {replaced} words")
    return "".join(pieces)


def _vote(
    token: str,
    votes: Counter,
    similarity_threshold: float,
    min_votes: int
) -> str:
    lowered = token.lower()
    best = token
    best_count = 0
    for candidate, count in votes.items():
        if count < min_votes:
            continue
        if similarity(lowered, candidate.lower()) <= similarity_threshold:
            continue
        if count > best_count:
            best, best_count = candidate, count
        elif count == best_count and candidate == token:
            best = token
    return best


def agreement(passes: Sequence[PassResult], transcript: str) -> float:
    """Mean similarity between the transcript and each pass (0-1)."""
    if not passes:
        return 0.0
    scores: List[float] = [similarity(transcript, p.text) for p in passes]
    return sum(scores) / len(scores)
