import base64
import time
from io import BytesIO
from typing import cast

import mss  # pyright: ignore[reportMissingImports]
import pytesseract  # pyright: ignore[reportMissingImports]
from PIL import Image  # pyright: ignore[reportMissingImports]

from focuswatch.logger import logger
from focuswatch.model.models import OcrText

__all__ = ["ScreenCapture"]

MAX_OCR_CHARS = 2000
MAX_OCR_WIDTH = 1600


class ScreenCapture:
    """スクリーンキャプチャとOCRを行うクラス."""

    def __init__(
        self,
        bbox: dict[str, int] | None = None,
        lang: str = "eng",
    ) -> None:
        """初期化する

        Args:
        bbox: キャプチャ領域 {"top": int, "left": int, "width": int, "height": int}
             Noneの場合はプライマリモニター全体
        lang: tesseractの言語指定 (例: "eng+chi_sim")

        """
        self._bbox = bbox
        self.lang = lang
        self.last_capture_time: float = 0.0

    @property
    def bbox(self) -> dict[str, int]:
        if self._bbox is None:
            self._bbox = self._get_primary_monitor_bbox()
            logger.info("ScreenCapture bbox resolved | bbox=%s", self._bbox)
        return self._bbox

    def _get_primary_monitor_bbox(self) -> dict[str, int]:
        """プライマリモニターの実際の解像度を取得"""
        with mss.mss() as sct:
            monitors = sct.monitors
            return cast(
                "dict[str, int]",
                monitors[1] if len(monitors) > 1 else monitors[0],
            )

    def capture_screen(self) -> Image.Image:
        with mss.mss() as sct:
            screenshot = sct.grab(self.bbox)
            image = Image.frombytes(
                "RGB", screenshot.size, screenshot.bgra, "raw", "BGRX"
            )
        self.last_capture_time = time.time()
        return image

    def extract_text(self, image: Image.Image) -> OcrText:
        """Run tesseract on ``image``; confidence is the mean word confidence."""
        if image.width > MAX_OCR_WIDTH:
            ratio = MAX_OCR_WIDTH / image.width
            image = image.resize((MAX_OCR_WIDTH, int(image.height * ratio)))

        data = pytesseract.image_to_data(
            image, lang=self.lang, output_type=pytesseract.Output.DICT
        )
        words: list[str] = []
        confidences: list[float] = []
        for word, conf in zip(data.get("text", []), data.get("conf", [])):
            if not str(word).strip():
                continue
            words.append(str(word).strip())
            if float(conf) >= 0:
                confidences.append(float(conf))

        text = " ".join(words)[:MAX_OCR_CHARS]
        confidence = sum(confidences) / len(confidences) / 100 if confidences else 0.0
        return OcrText(text=text, confidence=confidence)

    @staticmethod
    def encode_base64(image: Image.Image) -> str:
        """スクリーンキャプチャをbase64 (PNG) で返す"""
        buffer = BytesIO()
        image.save(buffer, format="PNG")
        return base64.b64encode(buffer.getvalue()).decode()
