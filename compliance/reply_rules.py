from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Pattern

from models.schemas import ChannelKind
from pipeline.base import ReplyPolicyError

MAX_REPLY_CHARS = 500

_PICTOGRAPH_RANGES = [
    ("\U0001F000", "\U0001F02F"),  # mahjong
    ("\U0001F0A0", "\U0001F0FF"),  # playing cards
    ("\U0001F100", "\U0001F1FF"),  # enclosed alphanumerics, regional indicators
    ("\U0001F200", "\U0001F2FF"),
    ("\U0001F300", "\U0001F5FF"),  # symbols and pictographs, skin tones
    ("\U0001F600", "\U0001F64F"),  # emoticons
    ("\U0001F650", "\U0001F67F"),
    ("\U0001F680", "\U0001F6FF"),  # transport and map
    ("\U0001F700", "\U0001F77F"),
    ("\U0001F780", "\U0001F7FF"),
    ("\U0001F800", "\U0001F8FF"),
    ("\U0001F900", "\U0001F9FF"),  # supplemental symbols and pictographs
    ("\U0001FA00", "\U0001FAFF"),
    ("\u2600", "\u26FF"),  # miscellaneous symbols
    ("\u2700", "\u27BF"),  # dingbats
    ("\u231A", "\u231B"),
    ("\u23E9", "\u23FA"),
    ("\u2B05", "\u2B07"),
    ("\u2B1B", "\u2B1C"),
    ("\u2B50", "\u2B50"),
    ("\u2B55", "\u2B55"),
    ("\u3030", "\u3030"),
    ("\u303D", "\u303D"),
    ("\u3297", "\u3297"),
    ("\u3299", "\u3299"),
    ("\uFE0E", "\uFE0F"),  # variation selectors
    ("\u200D", "\u200D"),  # zero width joiner
    ("\u20E3", "\u20E3"),  # combining keycap
]

PICTOGRAPH_PATTERN: Pattern[str] = re.compile(
    "[" + "".join(f"{lo}-{hi}" if lo != hi else lo for lo, hi in _PICTOGRAPH_RANGES) + "]"
)

# Second-person forms that mark the informal register. Locales missing here
# have no politeness distinction to enforce.
_INFORMAL_MARKERS: Dict[str, Pattern[str]] = {
    "tr": re.compile(r"(?<!\w)(sen|seni|sana|senin|senden|sende|seninle)(?!\w)", re.IGNORECASE),
    "de": re.compile(r"(?<!\w)(du|dich|dir|dein|deine|deinen|deinem|deiner)(?!\w)", re.IGNORECASE),
    "fr": re.compile(r"(?<!\w)(tu|toi|ton|tes)(?!\w)", re.IGNORECASE),
    "es": re.compile(r"(?<!\w)(tú|contigo|vosotros|vosotras)(?!\w)", re.IGNORECASE),
}


@dataclass(frozen=True)
class ReplyCheck:
    length_ok: bool
    pictograph_free: bool
    formal_register: bool

    @property
    def violations(self) -> List[str]:
        found: List[str] = []
        if not self.length_ok:
            found.append("length")
        if not self.pictograph_free:
            found.append("pictograph")
        if not self.formal_register:
            found.append("register")
        return found


def language_of(locale: str | None) -> str:
    return (locale or "").replace("_", "-").split("-")[0].strip().lower()


def requires_formal_register(locale: str | None) -> bool:
    return language_of(locale) in _INFORMAL_MARKERS


def contains_pictographs(text: str) -> bool:
    return bool(PICTOGRAPH_PATTERN.search(text or ""))


def strip_pictographs(text: str) -> str:
    cleaned = PICTOGRAPH_PATTERN.sub("", text or "")
    return re.sub(r"[ \t]{2,}", " ", cleaned).strip()


def uses_formal_register(text: str, locale: str | None) -> bool:
    if not requires_formal_register(locale):
        return True
    return not _INFORMAL_MARKERS[language_of(locale)].search(text or "")


def trim_to_limit(text: str, limit: int = MAX_REPLY_CHARS) -> str:
    """Trim to strictly fewer than ``limit`` characters on a sentence or word boundary."""
    text = (text or "").strip()
    if len(text) < limit:
        return text
    window = text[: limit - 1]
    cut = max(window.rfind(". "), window.rfind("! "), window.rfind("? "))
    if cut > 0:
        return window[: cut + 1].strip()
    cut = window.rfind(" ")
    if cut > 0:
        return window[:cut].strip()
    return window.strip()


def check_reply(text: str, kind: ChannelKind, locale: str | None) -> ReplyCheck:
    return ReplyCheck(
        length_ok=len(text or "") < MAX_REPLY_CHARS,
        pictograph_free=kind != ChannelKind.REVIEW or not contains_pictographs(text),
        formal_register=kind != ChannelKind.MESSAGE or uses_formal_register(text, locale),
    )


def enforce_reply_rules(text: str, kind: ChannelKind, locale: str | None) -> str:
    """Repair what can be repaired, then reject what cannot.

    Over-long text is trimmed and pictographs are stripped from review
    replies. Empty text or an informal register is a malformed result.
    """
    cleaned = (text or "").strip()
    if kind == ChannelKind.REVIEW:
        cleaned = strip_pictographs(cleaned)
    cleaned = trim_to_limit(cleaned)
    if not cleaned:
        raise ReplyPolicyError("generated reply is empty", {"kind": kind.value})
    check = check_reply(cleaned, kind, locale)
    if check.violations:
        raise ReplyPolicyError(
            f"generated reply violates {', '.join(check.violations)}",
            {"kind": kind.value, "locale": locale, "violations": check.violations},
        )
    return cleaned
