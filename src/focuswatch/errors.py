__all__ = [
    "ConfigError",
    "EvaluationError",
    "FocusWatchError",
    "MonitorNotRunningError",
    "ProviderError",
    "UnsupportedError",
]


class FocusWatchError(Exception):
    """Base class for focuswatch errors."""


class ConfigError(FocusWatchError):
    """監視設定が不正 (タスク未設定, 間隔が0以下など)."""


class UnsupportedError(FocusWatchError):
    """このプラットフォームではアプリ検出が利用できない."""


class ProviderError(FocusWatchError):
    """Active app / process query failed during a check."""


class EvaluationError(FocusWatchError):
    """Scoring or policy evaluation failed during a check."""


class MonitorNotRunningError(FocusWatchError):
    """監視が停止中に手動チェックが要求された."""
