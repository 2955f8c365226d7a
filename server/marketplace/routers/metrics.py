"""Metrics endpoint for Prometheus scraping."""

from fastapi import APIRouter, Request, Response

from ..core.observability import CONTENT_TYPE_LATEST, get_prometheus_metrics, metrics_collector

router = APIRouter()


@router.get(
    "/metrics",
    summary="Prometheus Metrics",
    description="Endpoint for Prometheus to scrape metrics",
    response_class=Response,
    tags=["Observability"]
)
async def metrics(request: Request):
    """
    Return Prometheus metrics.

    The side-effect queue depth is sampled at scrape time.
    """
    side_effects = getattr(request.app.state, "side_effects", None)
    if side_effects is not None:
        metrics_collector.set_side_effects_pending(side_effects.pending)

    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
