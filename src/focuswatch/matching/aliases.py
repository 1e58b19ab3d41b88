"""Common short application names and their canonical display names."""

import json
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType

from focuswatch.logger import logger

__all__ = ["APP_ALIASES", "AliasTable", "load_aliases"]

APP_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        # Browsers
        "chrome": "google chrome",
        "firefox": "mozilla firefox",
        "safari": "safari",
        "edge": "microsoft edge",
        "brave": "brave browser",
        # Code editors
        "vscode": "visual studio code",
        "code": "visual studio code",
        "sublime": "sublime text",
        "atom": "atom",
        "webstorm": "webstorm",
        "phpstorm": "phpstorm",
        "pycharm": "pycharm",
        # Communication
        "slack": "slack",
        "discord": "discord",
        "zoom": "zoom",
        "teams": "microsoft teams",
        "skype": "skype",
        # Development tools
        "terminal": "terminal",
        "cmd": "command prompt",
        "powershell": "windows powershell",
        "git": "git",
        "docker": "docker",
        # Media
        "spotify": "spotify",
        "vlc": "vlc media player",
        "itunes": "itunes",
        "youtube": "youtube",
        # Office
        "word": "microsoft word",
        "excel": "microsoft excel",
        "powerpoint": "microsoft powerpoint",
        "outlook": "microsoft outlook",
        "notion": "notion",
        "obsidian": "obsidian",
        # Social media
        "twitter": "twitter",
        "facebook": "facebook",
        "instagram": "instagram",
        "tiktok": "tiktok",
        # Gaming
        "steam": "steam",
        "origin": "origin",
        "epic": "epic games launcher",
    }
)


class AliasTable:
    """Read-only lookup from normalized short names to canonical names.

    Keys are expected to be normalized already; :func:`load_aliases`
    normalizes entries coming from a file.
    """

    def __init__(self, aliases: Mapping[str, str] | None = None) -> None:
        self._aliases = dict(APP_ALIASES if aliases is None else aliases)

    def lookup(self, normalized_name: str) -> str:
        return self._aliases.get(normalized_name, normalized_name)

    def __contains__(self, name: object) -> bool:
        return name in self._aliases

    def __len__(self) -> int:
        return len(self._aliases)


def load_aliases(path: str | Path) -> AliasTable:
    """JSONファイルで組み込みの別名を上書き・追加したテーブルを返す.

    File format: ``{"short name": "canonical name", ...}``.
    """
    # 循環importを避けるためここで読み込む
    from focuswatch.matching.normalizer import normalize

    with Path(path).open(encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        msg = f"alias file must contain a JSON object: {path}"
        raise TypeError(msg)

    merged = dict(APP_ALIASES)
    for short, canonical in data.items():
        key = normalize(str(short))
        value = normalize(str(canonical))
        if key and value:
            merged[key] = value
    logger.info("Loaded %d aliases from %s", len(data), path)
    return AliasTable(merged)
