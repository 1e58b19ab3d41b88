import json
import os
import re
import time
from dataclasses import dataclass
from typing import Any

import requests

from focuswatch.logger import logger

HTTP_OK = 200
MAX_SCREEN_TEXT_CHARS = 1500
MAX_RAW_REASON_CHARS = 200
HEURISTIC_CONFIDENCE = 0.3

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_DISTRACTED_MARKERS = (
    "not focused",
    "distracted",
    "unfocused",
    "false",
    "不专注",
    "分心",
    "集中していない",
)


@dataclass(frozen=True)
class Parsed:
    """LLM応答から取り出した判定."""

    is_focused: bool
    confidence: float
    reason: str
    suggestions: list[str] | None = None


@dataclass(frozen=True)
class Unparseable:
    raw_text: str


AssessmentOutcome = Parsed | Unparseable


def parse_assessment(content: str) -> AssessmentOutcome:
    """Strictly parse a JSON judgment, optionally wrapped in a code fence."""
    fenced = _FENCED_JSON_RE.search(content)
    text = fenced.group(1) if fenced else content
    start, end = text.find("{"), text.rfind("}")
    if start < 0 or end <= start:
        return Unparseable(raw_text=content)

    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return Unparseable(raw_text=content)
    if not isinstance(data, dict) or "isFocused" not in data:
        return Unparseable(raw_text=content)

    try:
        confidence = float(data.get("confidence") or 0.0)
    except (TypeError, ValueError):
        confidence = 0.0
    suggestions = data.get("suggestions")
    return Parsed(
        is_focused=bool(data["isFocused"]),
        confidence=max(0.0, min(1.0, confidence)),
        reason=str(data.get("reason") or "no reason given"),
        suggestions=[str(s) for s in suggestions]
        if isinstance(suggestions, list)
        else None,
    )


def heuristic_assessment(outcome: Unparseable) -> Parsed:
    """Second strategy for free-form answers: look for distraction markers."""
    lowered = outcome.raw_text.lower()
    is_focused = not any(marker in lowered for marker in _DISTRACTED_MARKERS)
    return Parsed(
        is_focused=is_focused,
        confidence=HEURISTIC_CONFIDENCE,
        reason=f"text analysis: {outcome.raw_text[:MAX_RAW_REASON_CHARS]}",
        suggestions=None
        if is_focused
        else ["check whether the current app is related to the task"],
    )


class LLMService:
    """OpenAI互換APIクライアント (LM Studio等) によるAI集中判定."""

    def __init__(
        self,
        base_url: str,
        model_name: str,
        timeout: float = 20.0,
    ) -> None:
        """初期化

        Args:
        base_url: OpenAI互換APIのベースURL（例: http://127.0.0.1:1234）
        model_name: 使用するモデル名（例: google/gemma-3-4b）
        timeout: APIタイムアウト(秒)

        """
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self.timeout = timeout
        self.chat_url = f"{self.base_url}/v1/chat/completions"

        self.system_prompt = """
You are a focus analysis assistant.
Decide whether the user is working on their declared task.

Return ONLY a JSON object with these exact keys:
- isFocused: true or false
- confidence: number between 0.0 and 1.0
- reason: brief explanation (max 80 chars)
- suggestions: optional list of short tips, only when not focused
""".strip()

        # 最後のAPI呼び出し時刻（レート制限用）
        self.last_call_time: float = 0.0
        self.min_call_interval = 1.0  # 最小呼び出し間隔（秒）

    def is_available(self) -> bool:
        """モデル一覧エンドポイントが応答するか確認する."""
        try:
            response = requests.get(f"{self.base_url}/v1/models", timeout=5)
        except requests.RequestException:
            return False
        else:
            status_code: int = response.status_code
            return status_code == HTTP_OK

    def _rate_limit(self) -> None:
        """レート制限を適用."""
        now = time.time()
        elapsed = now - self.last_call_time
        if elapsed < self.min_call_interval:
            time.sleep(self.min_call_interval - elapsed)
        self.last_call_time = time.time()

    def _build_context_prompt(
        self,
        task: str,
        active_app: str | None,
        screen_text: str | None,
    ) -> str:
        """タスク・前面アプリ・画面テキストからユーザープロンプトを組み立てる."""
        lines = [
            f"Task: {task}",
            f"Active app: {active_app or 'none detected'}",
        ]
        if screen_text:
            lines += ["Screen text:", screen_text[:MAX_SCREEN_TEXT_CHARS]]
        lines.append("Is the user focused on the task right now?")
        return "\n".join(lines)

    def _complete(self, prompt: str) -> str | None:
        payload = {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": self.system_prompt},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "max_tokens": 300,
        }
        response = requests.post(
            self.chat_url,
            json=payload,
            timeout=self.timeout,
            headers={"Content-Type": "application/json"},
        )
        if response.status_code != HTTP_OK:
            logger.warning("LLM error | status=%s", response.status_code)
            return None

        response_data: dict[str, Any] = response.json()
        content = response_data["choices"][0]["message"]["content"]
        return str(content).strip() or None

    def assess(
        self,
        task_description: str,
        active_app: str | None,
        screen_text: str | None = None,
    ) -> Parsed | None:
        """タスクに集中しているかをAIに判定させる.

        Returns:
            Parsed: 判定結果. LLM不可・タイムアウト・エラー時は None

        """
        if not self.is_available():
            return None

        try:
            self._rate_limit()
            content = self._complete(
                self._build_context_prompt(task_description, active_app, screen_text)
            )
        except requests.exceptions.Timeout:
            logger.warning("LLM timeout")
            return None
        except requests.RequestException as exc:
            logger.warning("LLM exception: %s", exc)
            return None
        except (KeyError, IndexError, ValueError) as exc:
            logger.warning("LLM response malformed: %s", exc)
            return None

        if content is None:
            return None

        outcome = parse_assessment(content)
        if isinstance(outcome, Unparseable):
            logger.info("LLM answer not JSON, using text analysis")
            return heuristic_assessment(outcome)
        return outcome


# 便利関数
def create_llm_service(
    base_url: str | None = None,
    model_name: str | None = None,
) -> LLMService:
    """LLMサービスのファクトリ関数.

    環境変数で設定（必須）:
    - LLM_URL: OpenAI互換APIのベースURL（例: http://127.0.0.1:1234）
    - LLM_MODEL: 使用するモデル名（例: google/gemma-3-4b）
    """
    resolved_base = base_url or os.getenv("LLM_URL")
    resolved_model = model_name or os.getenv("LLM_MODEL")
    if not resolved_base or not resolved_model:
        msg = "LLM_URL and LLM_MODEL must be set (e.g., in .env.local)."
        raise RuntimeError(msg)
    return LLMService(base_url=resolved_base, model_name=resolved_model)
