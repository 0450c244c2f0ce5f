"""
Grading model settings (API key + model name) from an ordered list of sources.

The first source that yields an API key wins. Sources that fail are logged
and skipped; nothing downstream knows which one answered.
"""

import os
from dataclasses import dataclass
from typing import List, Optional, Protocol

from examgrader.config import logger, DEFAULT_GEMINI_MODEL


@dataclass(frozen=True)
class GradingSettings:
    api_key: str
    model: str = DEFAULT_GEMINI_MODEL


class SettingsSource(Protocol):
    name: str

    async def load(self) -> Optional[GradingSettings]: ...


class EnvironmentSettingsSource:
    name = "environment"

    async def load(self) -> Optional[GradingSettings]:
        api_key = os.environ.get("GEMINI_API_KEY", "").strip()
        if not api_key:
            return None
        return GradingSettings(api_key=api_key, model=os.environ.get("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL)


class DatabaseSettingsSource:
    """Reads the admin-managed `global_settings` document."""
    name = "global_settings"

    def __init__(self, db):
        self._db = db

    async def load(self) -> Optional[GradingSettings]:
        doc = await self._db.global_settings.find_one({}, {"_id": 0})
        if not doc:
            return None
        api_key = (doc.get("gemini_api_key") or "").strip()
        if not api_key:
            return None
        return GradingSettings(api_key=api_key, model=doc.get("gemini_model") or DEFAULT_GEMINI_MODEL)


class ConfigProvider:
    def __init__(self, sources: List[SettingsSource]):
        self.sources = list(sources)

    async def get_settings(self) -> Optional[GradingSettings]:
        for source in self.sources:
            try:
                settings = await source.load()
            except Exception as e:
                logger.warning(f"Settings source '{source.name}' failed: {e}")
                continue
            if settings:
                logger.info(f"Grading settings loaded from {source.name}")
                return settings
        logger.warning("⚠️ No grading settings found in any source - AI grading will fail")
        return None
