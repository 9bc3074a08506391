import time
from typing import Any, Callable, Dict

import structlog
from django.core.cache import cache
from django.db import connections
from django.http import HttpRequest, JsonResponse
from django.utils import timezone

from modules.core.models import OutboxEvent

logger = structlog.get_logger(__name__)

HEALTH_CACHE_KEY = "_health_check"


def _check_database() -> Dict[str, Any]:
    conn = connections["default"]
    conn.ensure_connection()
    with conn.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()
    return {"outbox_pending": OutboxEvent.objects.pending().count()}


def _check_cache() -> Dict[str, Any]:
    cache.set(HEALTH_CACHE_KEY, "ok", 10)
    if cache.get(HEALTH_CACHE_KEY) != "ok":
        raise ConnectionError("cache read-back mismatch")
    return {}


# Order placement needs both: the database holds the stock and coupon
# counters, the cache holds throttling counters.
PROBES: Dict[str, Callable[[], Dict[str, Any]]] = {
    "database": _check_database,
    "cache": _check_cache,
}


def _probe(name: str, check: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    start = time.monotonic()
    try:
        details = check()
    except Exception:
        logger.error("health.probe_failed", probe=name, exc_info=True)
        return {"status": "down"}
    return {
        "status": "up",
        "response_time_ms": round((time.monotonic() - start) * 1000, 2),
        **details,
    }


def health_check(request: HttpRequest) -> JsonResponse:
    """Report database and cache reachability (200 healthy, 503 otherwise)."""
    services = {name: _probe(name, check) for name, check in PROBES.items()}
    healthy = all(result["status"] == "up" for result in services.values())
    status = "healthy" if healthy else "unhealthy"

    logger.info("health.checked", status=status)
    return JsonResponse(
        {
            "status": status,
            "timestamp": timezone.now().isoformat(),
            "services": services,
        },
        status=200 if healthy else 503,
    )
