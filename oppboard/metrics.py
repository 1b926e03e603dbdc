"""Metrics exporters for oppboard."""

from __future__ import annotations

from prometheus_client import Counter, make_asgi_app

MUTATIONS = Counter(
    "oppboard_mutations_total",
    "Number of completed mutating operations.",
    labelnames=("resource", "operation"),
)
SUBMISSIONS_RECEIVED = Counter(
    "oppboard_submissions_received_total",
    "Number of visitor submissions persisted for review.",
)
FAVICON_RESOLUTIONS = Counter(
    "oppboard_favicon_resolutions_total",
    "Favicon resolutions by outcome (loaded, placeholder, timeout).",
    labelnames=("outcome",),
)
ADMIN_LOGINS = Counter(
    "oppboard_admin_logins_total",
    "Admin login attempts by outcome.",
    labelnames=("outcome",),
)


def record_mutation(resource: str, operation: str) -> None:
    MUTATIONS.labels(resource=resource, operation=operation).inc()


def metrics_app():
    """Return an ASGI app serving the default Prometheus registry."""

    return make_asgi_app()
