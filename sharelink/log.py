import logging
import time

from fastapi import FastAPI, Request

logger = logging.getLogger("share-link-service")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def install_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        logger.info(
            "method=%s path=%s status=%s duration=%.4fs",
            request.method, request.url.path, response.status_code, time.time() - start_time,
        )
        return response
