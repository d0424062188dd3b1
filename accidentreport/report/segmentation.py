from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ScriptClass(str, Enum):
    latin = 'latin'
    chinese = 'chinese'
    thai = 'thai'
    japanese = 'japanese'
    korean = 'korean'


class FontRole(str, Enum):
    latin = 'latin'
    cjk = 'cjk'


# (class, first code point, last code point); anything unmatched is latin.
SCRIPT_RANGES: tuple[tuple[ScriptClass, int, int], ...] = (
    (ScriptClass.chinese, 0x4E00, 0x9FFF),  # CJK Unified Ideographs
    (ScriptClass.thai, 0x0E00, 0x0E7F),
    (ScriptClass.japanese, 0x3040, 0x309F),  # Hiragana
    (ScriptClass.japanese, 0x30A0, 0x30FF),  # Katakana
    (ScriptClass.korean, 0xAC00, 0xD7AF),  # Hangul Syllables
)

SCRIPT_FONT_ROLES: dict[ScriptClass, FontRole] = {
    ScriptClass.latin: FontRole.latin,
    ScriptClass.thai: FontRole.latin,
    ScriptClass.chinese: FontRole.cjk,
    ScriptClass.japanese: FontRole.cjk,
    ScriptClass.korean: FontRole.cjk,
}


@dataclass(frozen=True)
class TextRun:
    text: str
    script: ScriptClass
    font_role: FontRole


def classify(char: str) -> ScriptClass:
    code = ord(char)
    for script, low, high in SCRIPT_RANGES:
        if low <= code <= high:
            return script
    return ScriptClass.latin


def segment(text: str | None) -> list[TextRun]:
    """Split ``text`` into maximal runs of one script class, each tagged with its font role."""
    if not text:
        return []

    runs: list[TextRun] = []
    buffer: list[str] = []
    current: ScriptClass | None = None

    for char in text:
        script = classify(char)
        if current is not None and script != current:
            runs.append(TextRun(''.join(buffer), current, SCRIPT_FONT_ROLES[current]))
            buffer = []
        buffer.append(char)
        current = script

    if buffer and current is not None:
        runs.append(TextRun(''.join(buffer), current, SCRIPT_FONT_ROLES[current]))
    return runs


def is_mixed_script(text: str | None) -> bool:
    return len(segment(text)) > 1
