"""Langfuse setup and autofill trace tagging."""

import logging
from functools import lru_cache

from langfuse import Langfuse, get_client

from src.config import settings

logger = logging.getLogger(__name__)


@lru_cache
def get_langfuse() -> Langfuse | None:
    """
    Create the process Langfuse client from settings.

    Agents pick it up through get_client() once it exists.

    Returns:
        Langfuse client if both keys are configured, None otherwise.
    """
    if not settings.langfuse_configured:
        return None

    return Langfuse(
        secret_key=settings.langfuse_secret_key,
        public_key=settings.langfuse_public_key,
        host=settings.langfuse_base_url,
    )


def init_langfuse() -> bool:
    """Initialize tracing. Returns whether traces will be sent."""
    client = get_langfuse()
    if client is None:
        logger.info("Langfuse not configured, tracing disabled")
        return False

    # A bad key must not stop the service
    try:
        if not client.auth_check():
            logger.warning("Langfuse auth check failed")
            return False
    except Exception as e:
        logger.warning(f"Langfuse auth check failed: {e}")
        return False

    logger.info(f"Langfuse tracing enabled ({settings.langfuse_base_url})")
    return True


def shutdown_langfuse() -> None:
    """Flush pending traces and stop the client."""
    client = get_langfuse()
    if client:
        client.flush()
        client.shutdown()


def tag_autofill_trace(
    page_url: str,
    cache_key: str | None,
    attempt_number: int,
    used_cache: bool,
) -> None:
    """Attach autofill context to the current trace.

    No-op outside an observed call or when tracing is disabled. Tracing
    errors are logged and never reach the fill.
    """
    try:
        get_client().update_current_trace(
            name="autofill-attempt",
            tags=["autofill", cache_key or "uncached", "cached" if used_cache else "analyzed"],
            metadata={
                "page_url": page_url,
                "cache_key": cache_key,
                "attempt_number": attempt_number,
                "used_cache": used_cache,
            },
        )
    except Exception as e:
        logger.warning(f"Failed to tag autofill trace: {e}")
