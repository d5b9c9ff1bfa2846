from __future__ import annotations

from prometheus_client import Counter, Histogram

tryon_requests = Counter("wardrobe_tryon_requests_total", "Try-on requests by provider", ["provider"])
tryon_fallbacks = Counter("wardrobe_tryon_fallbacks_total", "Try-ons that fell back to the local compositor")
tryon_failures = Counter("wardrobe_tryon_failures_total", "Try-on requests that failed")
composite_seconds = Histogram("wardrobe_composite_seconds", "Local compositor run time")
