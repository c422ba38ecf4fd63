"""FastAPI dependencies."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from src.automation.template_cache import TemplateCache


@lru_cache
def get_template_cache() -> TemplateCache:
    """
    Dependency to get the shared template cache.

    One instance per process so its lock serializes every request.
    """
    return TemplateCache.from_settings()


# Type alias for dependency injection
TemplateCacheDep = Annotated[TemplateCache, Depends(get_template_cache)]
