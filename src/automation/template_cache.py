"""
Form template cache.

Remembers the field layout of known ATS application pages so repeat
visits can skip the expensive HTML analysis. Entries are keyed by
platform (e.g. "greenhouse:application"), expire after a TTL and are
evicted once they have failed too many times. Eviction is lazy: stale
entries are removed when they are next read.

All templates live under one key of a KeyValueStore:

    {
        "formTemplateCache": {
            "greenhouse:application": {
                "key": "...",
                "fields": [{"selector": ..., "label": ..., "type": ..., "options": [...]}],
                "createdAt": "...",
                "failCount": 0
            }
        }
    }
"""

import asyncio
import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, ValidationError

from src.automation.models import CachedTemplate, FieldShape
from src.automation.storage import JsonFileStore, KeyValueStore
from src.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

STORAGE_KEY = "formTemplateCache"
DEFAULT_TTL = timedelta(days=30)
DEFAULT_MAX_FAIL_COUNT = 3


@dataclass(frozen=True)
class CachePattern:
    """URL pattern for an ATS platform page type."""

    pattern: str
    key: str

    def matches(self, target: str) -> bool:
        return re.search(self.pattern, target, re.IGNORECASE) is not None


# Matched against "." + host + path, so apex domains match too.
ATS_CACHE_PATTERNS: tuple[CachePattern, ...] = (
    CachePattern(r"\.greenhouse\.io/", "greenhouse:application"),
    CachePattern(r"\.lever\.co/", "lever:application"),
    CachePattern(r"\.myworkdayjobs\.com/", "workday:application"),
    CachePattern(r"\.workday\.com/.*/job/", "workday:application"),
    CachePattern(r"\.ashbyhq\.com/", "ashby:application"),
    CachePattern(r"\.smartrecruiters\.com/", "smartrecruiters:application"),
    CachePattern(r"\.icims\.com/", "icims:application"),
)


def derive_cache_key(url: str) -> str | None:
    """Map a page URL to its platform cache key.

    Only host and path take part in matching; query strings, ports and
    credentials are ignored. When several patterns match, the longest
    (most specific) one wins.

    Args:
        url: Page URL

    Returns:
        Cache key, or None for unrecognised platforms (do not cache)
    """
    if not url or not url.strip():
        return None

    raw = url.strip()
    if "://" not in raw:
        raw = f"https://{raw}"

    try:
        parts = urlsplit(raw)
        host = parts.hostname
    except ValueError:
        return None

    if not host:
        return None

    target = f".{host}{parts.path or '/'}"
    matches = [p for p in ATS_CACHE_PATTERNS if p.matches(target)]
    if not matches:
        return None

    best = max(matches, key=lambda p: len(p.pattern))
    return best.key


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TemplateCache:
    """
    Persistent cache of ATS form layouts.

    Every operation is one whole-map read-modify-write under a lock, so
    operations are atomic with respect to each other within a process.
    Storage failures are logged and treated as misses or no-ops.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl: timedelta = DEFAULT_TTL,
        max_fail_count: int = DEFAULT_MAX_FAIL_COUNT,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.ttl = ttl
        self.max_fail_count = max_fail_count
        self._clock = clock
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "TemplateCache":
        """Build a file-backed cache from application settings."""
        config = config or default_settings
        return cls(
            store=JsonFileStore(config.template_cache_path),
            ttl=config.template_cache_ttl,
            max_fail_count=config.template_cache_max_fail_count,
        )

    @staticmethod
    def derive_key(url: str) -> str | None:
        """See derive_cache_key."""
        return derive_cache_key(url)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _load_all(self) -> dict[str, Any]:
        data = await self.store.get(STORAGE_KEY)
        if not isinstance(data, dict):
            if data is not None:
                logger.warning("Template cache root is not a mapping, ignoring it")
            return {}
        return data

    async def _save_all(self, data: dict[str, Any]) -> None:
        await self.store.set(STORAGE_KEY, data)

    @staticmethod
    def _parse(key: str, raw: Any) -> CachedTemplate | None:
        if not isinstance(raw, dict):
            return None
        try:
            return CachedTemplate.model_validate({"key": key, **raw})
        except ValidationError as e:
            logger.warning(f"Corrupt template entry {key}: {e.error_count()} validation errors")
            return None

    def _stale_reason(self, template: CachedTemplate) -> str | None:
        created_at = template.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        if self._clock() - created_at > self.ttl:
            return "expired"
        if template.fail_count >= self.max_fail_count:
            return "too many failures"
        return None

    @staticmethod
    def _dump(template: CachedTemplate) -> dict[str, Any]:
        return template.model_dump(mode="json", by_alias=True, exclude_none=True)

    @staticmethod
    def _to_shape(field: FieldShape | BaseModel | dict[str, Any]) -> FieldShape:
        if isinstance(field, FieldShape):
            return field
        if isinstance(field, BaseModel):
            return FieldShape.model_validate(field.model_dump())
        return FieldShape.model_validate(field)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CachedTemplate | None:
        """
        Get a live template.

        Absent, expired, over-threshold and corrupt entries all read as
        None; the last three are deleted as a side effect.
        """
        async with self._lock:
            try:
                data = await self._load_all()
                if key not in data:
                    return None

                template = self._parse(key, data[key])
                reason = "corrupt" if template is None else self._stale_reason(template)
                if reason:
                    del data[key]
                    await self._save_all(data)
                    logger.info(f"Evicted template {key} ({reason})")
                    return None

                logger.debug(f"Template cache hit: {key}")
                return template

            except Exception as e:
                logger.warning(f"Template cache get failed for {key}: {e}")
                return None

    async def put(
        self,
        key: str,
        fields: Sequence[FieldShape | BaseModel | dict[str, Any]],
    ) -> CachedTemplate | None:
        """
        Store a template, replacing any existing entry.

        Fields are reduced to selector/label/type/options. The failure
        count starts at 0 and the creation time is now.
        """
        async with self._lock:
            try:
                template = CachedTemplate(
                    key=key,
                    fields=[self._to_shape(f) for f in fields],
                    created_at=self._clock(),
                    fail_count=0,
                )
                data = await self._load_all()
                data[key] = self._dump(template)
                await self._save_all(data)

                logger.info(f"Saved template {key} with {len(template.fields)} fields")
                return template

            except Exception as e:
                logger.warning(f"Template cache put failed for {key}: {e}")
                return None

    async def increment_fail(self, key: str) -> int | None:
        """
        Record a failed use of a template.

        Returns:
            New failure count, or None if there was no entry. The entry is
            deleted once the count reaches the threshold.
        """
        async with self._lock:
            try:
                data = await self._load_all()
                if key not in data:
                    return None

                template = self._parse(key, data[key])
                if template is None:
                    del data[key]
                    await self._save_all(data)
                    logger.info(f"Evicted template {key} (corrupt)")
                    return None

                count = template.fail_count + 1
                if count >= self.max_fail_count:
                    del data[key]
                    logger.info(f"Evicted template {key} after {count} failures")
                else:
                    template.fail_count = count
                    data[key] = self._dump(template)
                    logger.info(f"Template {key} fail count is now {count}")

                await self._save_all(data)
                return count

            except Exception as e:
                logger.warning(f"Template cache increment_fail failed for {key}: {e}")
                return None

    async def reset_fail(self, key: str) -> bool:
        """Set the failure count back to 0. No-op if the entry is absent."""
        async with self._lock:
            try:
                data = await self._load_all()
                if key not in data:
                    return False

                template = self._parse(key, data[key])
                reason = "corrupt" if template is None else self._stale_reason(template)
                if reason:
                    del data[key]
                    await self._save_all(data)
                    logger.info(f"Evicted template {key} ({reason})")
                    return False

                if template.fail_count:
                    template.fail_count = 0
                    data[key] = self._dump(template)
                    await self._save_all(data)
                    logger.info(f"Reset fail count for template {key}")
                return True

            except Exception as e:
                logger.warning(f"Template cache reset_fail failed for {key}: {e}")
                return False

    async def invalidate(self, key: str) -> bool:
        """Remove one template."""
        async with self._lock:
            try:
                data = await self._load_all()
                if key not in data:
                    return False

                del data[key]
                await self._save_all(data)
                logger.info(f"Invalidated template {key}")
                return True

            except Exception as e:
                logger.warning(f"Template cache invalidate failed for {key}: {e}")
                return False

    async def clear(self) -> None:
        """Remove every template."""
        async with self._lock:
            try:
                await self.store.remove(STORAGE_KEY)
                logger.info("Cleared form template cache")
            except Exception as e:
                logger.warning(f"Template cache clear failed: {e}")

    async def list_templates(self) -> list[CachedTemplate]:
        """List live templates, evicting stale ones on the way."""
        async with self._lock:
            try:
                data = await self._load_all()
                live: list[CachedTemplate] = []
                evicted = []

                for key, raw in data.items():
                    template = self._parse(key, raw)
                    if template is None or self._stale_reason(template):
                        evicted.append(key)
                    else:
                        live.append(template)

                if evicted:
                    for key in evicted:
                        del data[key]
                    await self._save_all(data)
                    logger.info(f"Evicted {len(evicted)} stale templates")

                return sorted(live, key=lambda t: t.created_at, reverse=True)

            except Exception as e:
                logger.warning(f"Template cache list failed: {e}")
                return []
