"""Allow/block policy for the active application.

優先順位:
1. アクティブアプリなし -> 集中 (判定不能時は集中とみなす)
2. ブロックリストに一致 -> 脱線 (許可リストより優先)
3. 許可リストに一致しない -> 脱線
4. リストが両方空 -> 集中
"""

from collections.abc import Sequence

from focuswatch.matching.aliases import AliasTable
from focuswatch.matching.resolver import find_best_match
from focuswatch.matching.similarity import MATCH_THRESHOLD
from focuswatch.model.models import FocusDecision

__all__ = ["evaluate"]

REASON_NO_ACTIVE_APP = "no active application detected"
REASON_NO_RESTRICTIONS = "no restrictions configured"
REASON_NOT_BLOCKED = "application not in blocked list"


def _percent(score: float) -> str:
    return f"{score * 100:.0f}%"


def evaluate(
    active_app: str | None,
    allowed_apps: Sequence[str],
    blocked_apps: Sequence[str],
    aliases: AliasTable | None = None,
) -> FocusDecision:
    """Classify ``active_app`` against the configured app lists."""
    if not active_app:
        return FocusDecision(is_focused=True, reason=REASON_NO_ACTIVE_APP)

    if blocked_apps:
        blocked = find_best_match(active_app, blocked_apps, aliases)
        if blocked.score > MATCH_THRESHOLD:
            return FocusDecision(
                is_focused=False,
                reason=(
                    f"blocked application in use: {blocked.match} "
                    f"(match {_percent(blocked.score)})"
                ),
                matched_app=blocked.match,
                score=blocked.score,
            )

    if allowed_apps:
        allowed = find_best_match(active_app, allowed_apps, aliases)
        if allowed.score <= MATCH_THRESHOLD:
            return FocusDecision(
                is_focused=False,
                reason=f"active application not in allowed list: {active_app}",
            )
        return FocusDecision(
            is_focused=True,
            reason=(
                f"using allowed application: {allowed.match} "
                f"(match {_percent(allowed.score)})"
            ),
            matched_app=allowed.match,
            score=allowed.score,
        )

    if blocked_apps:
        return FocusDecision(is_focused=True, reason=REASON_NOT_BLOCKED)
    return FocusDecision(is_focused=True, reason=REASON_NO_RESTRICTIONS)
