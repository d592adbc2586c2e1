"""
Request / response logging middleware; every request is also fed to the performance monitor.
"""

import time

from fastapi import Request
from loguru import logger

from faqbot.services.monitoring import monitor


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


async def logging_middleware(request: Request, call_next):
    start = time.perf_counter()
    client = request.client.host if request.client else "-"
    logger.info(f"→ {request.method} {request.url.path} from {client}")

    try:
        response = await call_next(request)
    except Exception:
        monitor.record_request(_elapsed_ms(start), success=False)
        raise

    elapsed = _elapsed_ms(start)
    monitor.record_request(elapsed, success=response.status_code < 500)

    if response.status_code >= 500:
        logger.warning(f"← {request.method} {request.url.path} [{response.status_code}] {elapsed}ms")
    else:
        logger.info(f"← {request.method} {request.url.path} [{response.status_code}] {elapsed}ms")

    return response
