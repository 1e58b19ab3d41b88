"""Environment based settings.

Values are read from the process environment after loading ``.env.local``
from the working directory, mirroring how the services are started locally.

- ``LLM_URL`` / ``LLM_MODEL``: OpenAI互換APIの設定 (両方ある場合のみAI判定を有効化)
- ``FOCUSWATCH_INTERVAL``: 既定の監視間隔 (秒)
- ``FOCUSWATCH_CHECK_TIMEOUT``: 外部呼び出し1回あたりのタイムアウト (秒)
- ``FOCUSWATCH_ENABLE_OCR``: ``1`` でスクリーンOCRを有効化
- ``FOCUSWATCH_ALIASES_FILE``: 追加のアプリ別名JSON
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_INTERVAL_SECONDS = 60
DEFAULT_CHECK_TIMEOUT = 10.0
ENV_FILE = Path(".env.local")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process wide settings resolved from the environment."""

    interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    check_timeout: float = DEFAULT_CHECK_TIMEOUT
    enable_ocr: bool = False
    llm_url: str | None = None
    llm_model: str | None = None
    aliases_file: str | None = None

    @property
    def llm_enabled(self) -> bool:
        return bool(self.llm_url and self.llm_model)


def load_settings(env_file: Path | None = None) -> Settings:
    """``.env.local`` を読み込んで設定を返す."""
    load_dotenv(dotenv_path=env_file or ENV_FILE, override=False)

    return Settings(
        interval_seconds=int(
            os.getenv("FOCUSWATCH_INTERVAL", str(DEFAULT_INTERVAL_SECONDS))
        ),
        check_timeout=float(
            os.getenv("FOCUSWATCH_CHECK_TIMEOUT", str(DEFAULT_CHECK_TIMEOUT))
        ),
        enable_ocr=os.getenv("FOCUSWATCH_ENABLE_OCR", "").lower() in _TRUTHY,
        llm_url=os.getenv("LLM_URL") or None,
        llm_model=os.getenv("LLM_MODEL") or None,
        aliases_file=os.getenv("FOCUSWATCH_ALIASES_FILE") or None,
    )
