from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Iterable

from crewlink.services.models import SkillRecord

logger = logging.getLogger(__name__)

SkillLoader = Callable[[], Awaitable[list[SkillRecord]]]


class SkillCatalogCache:
    """Time-bounded copy of the skill catalog.

    The catalog is loaded lazily on first use and reloaded once ``ttl_seconds``
    have elapsed since the last load, or after ``invalidate()``.
    """

    def __init__(
        self,
        loader: SkillLoader,
        *,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._skills: list[SkillRecord] | None = None
        self._loaded_at = 0.0

    async def get_all(self) -> list[SkillRecord]:
        if self._skills is None or self._clock() - self._loaded_at >= self._ttl_seconds:
            self._skills = list(await self._loader())
            self._loaded_at = self._clock()
            logger.info("skill catalog loaded count=%s", len(self._skills))
        return list(self._skills)

    async def resolve_ids(self, names: Iterable[str]) -> list[int]:
        by_name = {skill.name.strip().lower(): skill.id for skill in await self.get_all()}
        resolved: list[int] = []
        for name in names:
            skill_id = by_name.get(name.strip().lower())
            if skill_id is None:
                logger.warning("unknown skill skipped name=%s", name)
                continue
            if skill_id not in resolved:
                resolved.append(skill_id)
        return resolved

    def invalidate(self) -> None:
        self._skills = None
        self._loaded_at = 0.0

