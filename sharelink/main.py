import logging
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Callable
from urllib.parse import quote

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, Response, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sharelink.config import Settings, get_settings
from sharelink.errors import ShareLinkError
from sharelink.log import install_request_logging, setup_logging
from sharelink.models import (
    FileListResponse,
    FileRecord,
    ShareLinkListResponse,
    ShareLinkRecord,
    ShareLinkRequest,
    ShareLinkResponse,
    SharedFileResponse,
)
from sharelink.repository import FileRepository, ShareLinkRepository
from sharelink.service import ShareLinkService, utc_now
from sharelink.storage import decode_content, read_upload_as_base64
from sharelink.tokens import TokenGenerator

logger = logging.getLogger(__name__)

ERROR_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    410: "expired",
    413: "payload_too_large",
}


def requester_id(x_user_id: int | None = Header(default=None)) -> int:
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="authentication required")
    return x_user_id


def create_app(settings: Settings | None = None, clock: Callable[[], datetime] | None = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level)

    files = FileRepository(settings.database_path)
    links = ShareLinkRepository(settings.database_path)
    service = ShareLinkService(
        files,
        links,
        TokenGenerator(settings.token_bytes),
        clock=clock or utc_now,
        default_expiry_days=settings.default_expiry_days,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        Path(settings.database_path).parent.mkdir(parents=True, exist_ok=True)
        files.init()
        links.init()
        logger.info("database ready at %s", settings.database_path)
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.share_links = service
    install_request_logging(app)

    def error_response(status_code: int, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": ERROR_CODES.get(status_code, "error"), "message": message}},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(_: Request, exc: RequestValidationError):
        missing_fields = [
            ".".join(str(item) for item in error["loc"] if item != "body")
            for error in exc.errors()
            if error.get("type") == "missing"
        ]
        if missing_fields:
            message = f"missing parameters: {', '.join(missing_fields)}"
        else:
            message = "invalid request parameters"
        return error_response(400, message)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(_: Request, exc: HTTPException):
        return error_response(exc.status_code, str(exc.detail) if exc.detail else "request failed")

    @app.exception_handler(ShareLinkError)
    async def share_link_exception_handler(_: Request, exc: ShareLinkError):
        return error_response(exc.status_code, exc.message)

    def share_url(request: Request, token: str) -> str:
        base = settings.public_base_url or str(request.base_url)
        return base.rstrip("/") + f"/v1/share/{token}"

    @app.get("/")
    def root() -> dict:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "environment": settings.app_env}

    @app.post("/v1/files/upload", response_model=FileRecord, status_code=201)
    def upload_file(
        file: UploadFile = File(...),
        folder: str = Form(""),
        user_id: int = Depends(requester_id),
    ):
        if not file.filename:
            raise HTTPException(status_code=400, detail="filename is required")

        try:
            content, size = read_upload_as_base64(file, max_size_bytes=settings.max_upload_size_bytes)
        except ValueError as exc:
            raise HTTPException(status_code=413, detail=str(exc)) from exc

        record = files.create_file(
            owner_id=user_id,
            name=file.filename,
            content_type=file.content_type or "application/octet-stream",
            size=size,
            content=content,
            folder=folder,
        )
        return FileRecord(**record)

    @app.get("/v1/files", response_model=FileListResponse)
    def list_files(include_deleted: bool = False, user_id: int = Depends(requester_id)):
        rows = files.list_files_for_owner(user_id, include_deleted=include_deleted)
        return FileListResponse(files=[FileRecord(**row) for row in rows])

    @app.delete("/v1/files/{file_id}")
    def trash_file(file_id: int, user_id: int = Depends(requester_id)) -> dict:
        service.trash_file(user_id, file_id)
        return {"message": "file moved to trash"}

    @app.post("/v1/files/{file_id}/restore", response_model=FileRecord)
    def restore_file(file_id: int, user_id: int = Depends(requester_id)):
        return FileRecord(**service.restore_file(user_id, file_id))

    @app.delete("/v1/files/{file_id}/permanent")
    def delete_file(file_id: int, user_id: int = Depends(requester_id)) -> dict:
        revoked = service.delete_file(user_id, file_id)
        return {"message": "file permanently deleted", "revoked_links": revoked}

    @app.post("/v1/files/{file_id}/share", response_model=ShareLinkResponse)
    def share_file(
        file_id: int,
        request: Request,
        payload: ShareLinkRequest | None = None,
        user_id: int = Depends(requester_id),
    ):
        expiry_days = payload.expiry_days if payload else None
        if expiry_days is not None and expiry_days > settings.max_expiry_days:
            raise HTTPException(
                status_code=400,
                detail=f"expiryDays must be <= {settings.max_expiry_days}",
            )

        link = service.issue_link(user_id, file_id, expiry_days)
        return ShareLinkResponse(
            id=link["id"],
            token=link["token"],
            url=share_url(request, link["token"]),
            expiry_date=link["expiry_date"],
        )

    @app.get("/v1/files/{file_id}/share-links", response_model=ShareLinkListResponse)
    def list_share_links(file_id: int, user_id: int = Depends(requester_id)):
        rows = service.list_links(user_id, file_id)
        return ShareLinkListResponse(links=[ShareLinkRecord(**row) for row in rows])

    @app.delete("/v1/share-links/{link_id}", status_code=204)
    def revoke_share_link(link_id: int, user_id: int = Depends(requester_id)):
        service.revoke_link(user_id, link_id)
        return Response(status_code=204)

    @app.get("/v1/share/{token}", response_model=SharedFileResponse)
    def resolve_share_link(token: str):
        link, file_row = service.resolve_link(token)
        return SharedFileResponse(
            file_id=file_row["id"],
            name=file_row["name"],
            content_type=file_row["content_type"],
            size=file_row["size"],
            content=file_row["content"],
            uploaded_at=file_row["uploaded_at"],
            expiry_date=link["expiry_date"],
        )

    @app.get("/v1/share/{token}/download")
    def download_shared_file(token: str):
        _, file_row = service.resolve_link(token)
        return Response(
            content=decode_content(file_row["content"]),
            media_type=file_row["content_type"],
            headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_row['name'])}"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
