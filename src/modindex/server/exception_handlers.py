from fastapi import FastAPI
from fastapi.responses import JSONResponse

from modindex.main.exceptions import EXCEPTION_MAP
from modindex.main.logging import get_logger
from modindex.server.feed_models import ErrorResponse

logger = get_logger(__name__)


def add_exception_handlers(app: FastAPI):
    for exception, (status_code, error_message, error_code) in EXCEPTION_MAP.items():

        def handler(
            request,
            exc,
            status_code=status_code,
            error_message=error_message,
            error_code=error_code,
        ):
            message = error_message or str(exc)

            if status_code >= 500:
                logger.error(
                    f"{request.method} {request.url.path} failed: {exc}",
                    exc_info=exc,
                    extra={"method": request.method, "path": request.url.path},
                )

            return JSONResponse(
                status_code=status_code,
                content=ErrorResponse(message=message, error_code=error_code).model_dump(),
            )

        app.add_exception_handler(exception, handler)
