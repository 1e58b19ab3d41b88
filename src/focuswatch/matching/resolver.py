from collections.abc import Sequence

from focuswatch.matching.aliases import AliasTable
from focuswatch.matching.normalizer import normalize
from focuswatch.matching.similarity import MATCH_THRESHOLD, SUGGESTION_THRESHOLD, score
from focuswatch.model.models import BestMatch, ListMatch, MatchResult

__all__ = [
    "find_all_matches",
    "find_best_match",
    "is_app_in_list",
    "suggest_app_names",
]

MIN_SUGGESTION_INPUT = 2


def find_best_match(
    target: str | None,
    candidates: Sequence[str],
    aliases: AliasTable | None = None,
) -> BestMatch:
    """候補リストから最もスコアの高いアプリを探す.

    A match is reported only when its score exceeds ``MATCH_THRESHOLD``.
    Equal scores keep the earliest candidate.
    """
    normalized_target = normalize(target)
    if not target or not candidates:
        return BestMatch(match=None, score=0.0, normalized_target=normalized_target)

    best: str | None = None
    best_score = 0.0
    for candidate in candidates:
        candidate_score = score(target, candidate, aliases)
        if candidate_score > best_score and candidate_score > MATCH_THRESHOLD:
            best = candidate
            best_score = candidate_score

    return BestMatch(
        match=best,
        score=best_score,
        normalized_target=normalized_target,
        normalized_candidate=normalize(best) if best is not None else "",
    )


def find_all_matches(
    target: str | None,
    candidates: Sequence[str],
    threshold: float = MATCH_THRESHOLD,
    aliases: AliasTable | None = None,
) -> list[MatchResult]:
    """Every candidate scoring at least ``threshold``, best first.

    ``sorted`` is stable so equal scores keep their input order.
    """
    if not target or not candidates:
        return []

    matches = []
    for candidate in candidates:
        candidate_score = score(target, candidate, aliases)
        if candidate_score >= threshold:
            matches.append(
                MatchResult(
                    candidate=candidate,
                    score=candidate_score,
                    normalized_candidate=normalize(candidate),
                )
            )
    return sorted(matches, key=lambda m: m.score, reverse=True)


def is_app_in_list(
    app_name: str | None,
    app_list: Sequence[str],
    aliases: AliasTable | None = None,
) -> ListMatch:
    result = find_best_match(app_name, app_list, aliases)
    return ListMatch(
        is_match=result.score > MATCH_THRESHOLD,
        matched_app=result.match,
        score=result.score,
    )


def suggest_app_names(
    partial: str | None,
    available_apps: Sequence[str],
    max_suggestions: int = 5,
    aliases: AliasTable | None = None,
) -> list[MatchResult]:
    """入力途中の名前からアプリ名の候補を返す (オートコンプリート用)."""
    if not partial or len(partial) < MIN_SUGGESTION_INPUT:
        return []
    matches = find_all_matches(partial, available_apps, SUGGESTION_THRESHOLD, aliases)
    return matches[:max_suggestions]
