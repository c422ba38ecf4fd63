"""Form template cache API routes."""

from fastapi import APIRouter, HTTPException, status

from src.api.dependencies import TemplateCacheDep
from src.api.schemas import (
    DeriveKeyRequest,
    DeriveKeyResponse,
    FailCountResponse,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpsertRequest,
)
from src.automation.models import CachedTemplate
from src.automation.template_cache import TemplateCache

router = APIRouter()


def _to_response(template: CachedTemplate, cache: TemplateCache) -> TemplateResponse:
    return TemplateResponse(
        key=template.key,
        fields=template.fields,
        created_at=template.created_at,
        expires_at=template.created_at + cache.ttl,
        fail_count=template.fail_count,
    )


@router.get("/", response_model=TemplateListResponse)
async def list_templates(cache: TemplateCacheDep):
    """List live templates. Expired and failing ones are evicted on the way."""
    templates = await cache.list_templates()
    return TemplateListResponse(
        templates=[_to_response(t, cache) for t in templates],
        total=len(templates),
    )


@router.post("/derive-key", response_model=DeriveKeyResponse)
async def derive_key(request: DeriveKeyRequest, cache: TemplateCacheDep):
    """Resolve a page URL to its platform cache key."""
    cache_key = cache.derive_key(request.url)
    return DeriveKeyResponse(
        url=request.url,
        cache_key=cache_key,
        cacheable=cache_key is not None,
    )


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def clear_templates(cache: TemplateCacheDep):
    """Remove every cached template."""
    await cache.clear()


@router.get("/{cache_key}", response_model=TemplateResponse)
async def get_template(cache_key: str, cache: TemplateCacheDep):
    """Get one live template."""
    template = await cache.get(cache_key)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {cache_key} not found")
    return _to_response(template, cache)


@router.put("/{cache_key}", response_model=TemplateResponse)
async def put_template(
    cache_key: str,
    request: TemplateUpsertRequest,
    cache: TemplateCacheDep,
):
    """
    Store a template, replacing any existing one.

    The failure count starts at 0 and the TTL restarts.
    """
    template = await cache.put(cache_key, request.fields)
    if template is None:
        raise HTTPException(status_code=503, detail="Template cache is unavailable")
    return _to_response(template, cache)


@router.post("/{cache_key}/fail", response_model=FailCountResponse)
async def record_failure(cache_key: str, cache: TemplateCacheDep):
    """Record a failed use of a template. Evicts it at the threshold."""
    count = await cache.increment_fail(cache_key)
    if count is None:
        raise HTTPException(status_code=404, detail=f"Template {cache_key} not found")
    return FailCountResponse(
        key=cache_key,
        fail_count=count,
        evicted=count >= cache.max_fail_count,
    )


@router.post("/{cache_key}/reset", response_model=FailCountResponse)
async def reset_failures(cache_key: str, cache: TemplateCacheDep):
    """Reset a template's failure count."""
    if not await cache.reset_fail(cache_key):
        raise HTTPException(status_code=404, detail=f"Template {cache_key} not found")
    return FailCountResponse(key=cache_key, fail_count=0, evicted=False)


@router.delete("/{cache_key}", status_code=status.HTTP_204_NO_CONTENT)
async def invalidate_template(cache_key: str, cache: TemplateCacheDep):
    """Remove one template."""
    if not await cache.invalidate(cache_key):
        raise HTTPException(status_code=404, detail=f"Template {cache_key} not found")
