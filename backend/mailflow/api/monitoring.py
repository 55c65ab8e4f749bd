"""Monitoring API routes for health checks and metrics"""
import logging

import redis
from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from mailflow.core.metrics import update_queue_depth_gauge
from mailflow.db import redis as cache
from mailflow.db.email_queue import queue_depths

router = APIRouter(tags=["monitoring"])
logger = logging.getLogger(__name__)


@router.get("/metrics")
def metrics_endpoint():
    """Prometheus metrics endpoint - updates queue gauges before export"""
    try:
        update_queue_depth_gauge(queue_depths())
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Could not read queue depths for metrics: {e}")

    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.get("/health")
def health_check():
    """Health check endpoint

    The dedup cache is fail-open, so an unreachable cache degrades rather
    than fails the service.
    """
    cache_ok = cache.ping()
    return {"status": "healthy" if cache_ok else "degraded", "cache": cache_ok}
