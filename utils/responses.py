"""
Response helpers shared by every router.

    success(data, **extra)  -> {"success": true, "data": ..., **extra}
    handle_error(e)         -> error envelope with the matching status
    attachment(...)         -> file download with Content-Disposition
"""

from datetime import date, datetime
from typing import Any, Union
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
import structlog

from exceptions import AppError

logger = structlog.get_logger(__name__)


# Content types of export formats
MEDIA_TYPES = {
    "csv": "text/csv",
    "tsv": "text/tab-separated-values",
    "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "html": "text/html",
}

FILE_EXTENSIONS = {
    "csv": "csv",
    "tsv": "tsv",
    "excel": "xlsx",
    "html": "html",
}


def success(data: Any = None, status_code: int = 200, **extra) -> JSONResponse:
    """Wrap a payload in the success envelope."""
    content = {"success": True, "data": data}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {},
                "timestamp": datetime.utcnow().isoformat()
            }
        }
    )


def export_filename(name: str, export_type: str, on: date = None) -> str:
    """<name>_<YYYY-MM-DD>.<ext>"""
    on = on or date.today()
    return f"{name}_{on.isoformat()}.{FILE_EXTENSIONS[export_type]}"


def attachment(
    body: Union[str, bytes],
    export_type: str,
    filename: str
) -> Response:
    """File download response."""
    return Response(
        content=body,
        media_type=MEDIA_TYPES[export_type],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
