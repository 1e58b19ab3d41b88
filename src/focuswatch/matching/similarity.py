"""Tiered similarity scoring between two application names.

Tiers are evaluated in order and the first one that applies wins:

1. canonical names equal                 -> 1.0
2. normalized names equal                -> 0.95
3. canonical containment                 -> 0.9 (candidate contains target)
                                            0.85 (target contains candidate)
4. normalized containment                -> 0.8 / 0.75
5. word overlap ratio above one half     -> 0.6 + ratio * 0.15
6. Levenshtein / Jaro-Winkler blend      -> blend if above 0.6, else 0

Tiers 3 and 4 look at direction, so ``score(a, b)`` and ``score(b, a)`` may
differ: ``score("studio", "visual studio code")`` is 0.9 while the reverse
is 0.85.
"""

from focuswatch.matching.aliases import AliasTable
from focuswatch.matching.normalizer import canonicalize, normalize

__all__ = [
    "MATCH_THRESHOLD",
    "SUGGESTION_THRESHOLD",
    "jaro_winkler",
    "levenshtein_distance",
    "levenshtein_similarity",
    "score",
]

MATCH_THRESHOLD = 0.6
SUGGESTION_THRESHOLD = 0.3

WORD_OVERLAP_BASE = 0.6
WORD_OVERLAP_WEIGHT = 0.15
LEVENSHTEIN_WEIGHT = 0.4
JARO_WINKLER_WEIGHT = 0.6
WINKLER_PREFIX_LIMIT = 4
WINKLER_SCALING = 0.1


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance with unit insert/delete/substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            )
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def jaro_winkler(a: str, b: str) -> float:
    """Jaro similarity with the Winkler common-prefix bonus."""
    len_a, len_b = len(a), len(b)
    if len_a == 0 and len_b == 0:
        return 1.0
    if len_a == 0 or len_b == 0:
        return 0.0

    window = max(len_a, len_b) // 2 - 1
    if window < 0:
        return 0.0

    a_matched = [False] * len_a
    b_matched = [False] * len_b
    matches = 0
    for i, ch in enumerate(a):
        start = max(0, i - window)
        end = min(i + window + 1, len_b)
        for j in range(start, end):
            if b_matched[j] or b[j] != ch:
                continue
            a_matched[i] = b_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i in range(len_a):
        if not a_matched[i]:
            continue
        while not b_matched[k]:
            k += 1
        if a[i] != b[k]:
            transpositions += 1
        k += 1

    jaro = (
        matches / len_a + matches / len_b + (matches - transpositions / 2) / matches
    ) / 3

    prefix = 0
    for ca, cb in zip(a[:WINKLER_PREFIX_LIMIT], b[:WINKLER_PREFIX_LIMIT]):
        if ca != cb:
            break
        prefix += 1

    return jaro + WINKLER_SCALING * prefix * (1 - jaro)


def _word_overlap(target: str, candidate: str) -> float:
    target_words = [w for w in target.split(" ") if w]
    candidate_words = [w for w in candidate.split(" ") if w]
    if not target_words or not candidate_words:
        return 0.0
    matched = sum(
        1
        for tw in target_words
        if any(cw in tw or tw in cw for cw in candidate_words)
    )
    return matched / max(len(target_words), len(candidate_words))


def score(target: str, candidate: str, aliases: AliasTable | None = None) -> float:
    """Confidence in [0, 1] that ``candidate`` names the same app as ``target``."""
    nt = normalize(target)
    nc = normalize(candidate)
    # 正規化後に空になる名前 ("!!!" など) は比較対象外
    if not nt or not nc:
        return 0.0

    ct = canonicalize(nt, aliases)
    cc = canonicalize(nc, aliases)

    if ct == cc:
        return 1.0
    if nt == nc:
        return 0.95

    if ct in cc:
        return 0.9
    if cc in ct:
        return 0.85
    if nt in nc:
        return 0.8
    if nc in nt:
        return 0.75

    ratio = _word_overlap(ct, cc)
    if ratio > 0.5:  # noqa: PLR2004
        return WORD_OVERLAP_BASE + ratio * WORD_OVERLAP_WEIGHT

    fuzzy = LEVENSHTEIN_WEIGHT * levenshtein_similarity(
        ct, cc
    ) + JARO_WINKLER_WEIGHT * jaro_winkler(ct, cc)
    return fuzzy if fuzzy > MATCH_THRESHOLD else 0.0
