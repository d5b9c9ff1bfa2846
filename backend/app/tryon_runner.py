import logging
from typing import Optional

import requests

from pipeline.io_types import RasterImage
from providers.bailian_api import BailianAPIError, BailianTryOn
from providers.base import TryOnOutcome
from providers.local_stub import LocalTryOn
from .config import settings
from .metrics import composite_seconds, tryon_failures, tryon_fallbacks, tryon_requests
from .storage import RESULTS_DIR, Storage, StorageError

logger = logging.getLogger(__name__)


def _remote_provider() -> Optional[BailianTryOn]:
    backend = str(settings.get("tryon.provider", "local")).lower()
    if backend != "bailian":
        return None
    return BailianTryOn(store=Storage())


def run_tryon(
    person: bytes,
    garment: Optional[bytes],
    category: Optional[str] = None,
    mode: str = "separate",
    top: Optional[bytes] = None,
    bottom: Optional[bytes] = None,
) -> TryOnOutcome:
    """
    Prefer the AI try-on service when configured; otherwise, or when it fails,
    composite locally. Local results are written under RESULTS_DIR.
    """
    remote = _remote_provider()
    fallback = False
    if remote is not None:
        if remote.is_configured():
            tryon_requests.labels(provider=remote.name).inc()
            try:
                return remote.try_on(person, garment, category, top=top, bottom=bottom, mode=mode)
            except (BailianAPIError, StorageError, requests.RequestException) as e:
                if not settings.get_bool("tryon.fallback", True):
                    tryon_failures.inc()
                    raise
                logger.warning("AI try-on failed, falling back to local compositor: %s", e)
        else:
            logger.info("AI try-on selected but not configured, using local compositor")
        fallback = True
        tryon_fallbacks.inc()

    local = LocalTryOn(RESULTS_DIR)
    tryon_requests.labels(provider=local.name).inc()
    try:
        with composite_seconds.time():
            outcome = local.try_on(person, garment, category, top=top, bottom=bottom, mode=mode)
    except Exception:
        tryon_failures.inc()
        raise
    outcome.fallback = fallback
    return outcome


def render_local(person: bytes, garment: bytes, category: Optional[str] = None) -> RasterImage:
    tryon_requests.labels(provider=LocalTryOn.name).inc()
    try:
        with composite_seconds.time():
            return LocalTryOn(RESULTS_DIR).render(person, garment, category)
    except Exception:
        tryon_failures.inc()
        raise


def poll_tryon(task_id: str) -> dict:
    remote = BailianTryOn(store=Storage())
    if not remote.api_key:
        raise BailianAPIError("DashScope API key not configured")
    return remote.poll_job(task_id)


def test_connection() -> dict:
    return BailianTryOn(store=Storage()).test_connection()
