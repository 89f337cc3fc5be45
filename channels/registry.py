from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from models.schemas import ChannelKind, Platform
from pipeline.retry_policy import RetryPolicy
from settings import SETTINGS


@dataclass(frozen=True)
class ReplyTemplate:
    key: str
    name: str
    body: str
    language: str = "tr"


@dataclass
class ChannelProfile:
    platform: Platform
    kind: ChannelKind
    display_name: str
    locale: str = "tr-TR"
    session_window: Optional[timedelta] = None
    destination_address: str = ""
    destination_protocol: str = "https"
    delivery: RetryPolicy = field(default_factory=RetryPolicy.from_settings)
    templates: Dict[str, ReplyTemplate] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChannelProfile":
        platform = Platform(str(data["platform"]))
        kind = ChannelKind(str(data.get("kind", "message")))
        hours = data.get("session_window_hours")
        if kind == ChannelKind.REVIEW:
            window = None
        else:
            window = timedelta(hours=float(hours if hours is not None else 24))
        destination = dict(data.get("destination", {}))
        templates: Dict[str, ReplyTemplate] = {}
        for key, raw in dict(data.get("templates", {})).items():
            templates[str(key)] = ReplyTemplate(
                key=str(key),
                name=str(raw.get("name") or key),
                body=str(raw["body"]),
                language=str(raw.get("language", "tr")),
            )
        return cls(
            platform=platform,
            kind=kind,
            display_name=str(data.get("display_name", platform.value)),
            locale=str(data.get("locale") or SETTINGS.default_locale),
            session_window=window,
            destination_address=str(destination.get("address", "")),
            destination_protocol=str(destination.get("protocol", "https")),
            delivery=RetryPolicy.from_dict(data.get("delivery")),
            templates=templates,
        )

    @property
    def has_templates(self) -> bool:
        return bool(self.templates)

    def template_for(self, intent: str | None) -> ReplyTemplate | None:
        if not self.templates:
            return None
        key = (intent or "").strip().lower()
        return self.templates.get(key) or self.templates.get("default")


class ChannelRegistry:
    def __init__(self, profiles_dir: str | Path | None = None) -> None:
        configured = profiles_dir or SETTINGS.channel_profiles_dir or (Path(__file__).resolve().parent / "profiles")
        self.profiles_dir = Path(configured)
        self._cache: Dict[Platform, ChannelProfile] = {}

    def list_profiles(self) -> List[ChannelProfile]:
        profiles: List[ChannelProfile] = []
        for platform in Platform:
            profile = self.try_load(platform)
            if profile is not None:
                profiles.append(profile)
        return profiles

    def load(self, platform: Platform | str) -> ChannelProfile:
        platform = Platform(platform)
        if platform in self._cache:
            return self._cache[platform]
        path = self.profiles_dir / f"{platform.value}.json"
        if not path.exists():
            raise FileNotFoundError(f"channel profile not found: {platform.value}")
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        profile = ChannelProfile.from_dict(data)
        self._cache[platform] = profile
        return profile

    def try_load(self, platform: Platform | str) -> ChannelProfile | None:
        try:
            return self.load(platform)
        except (FileNotFoundError, ValueError):
            return None

    def register(self, profile: ChannelProfile) -> None:
        self._cache[profile.platform] = profile
