import logging

from fastapi import APIRouter, File, Request, UploadFile

from relay_api.errors import PayloadTooLargeError, UploadFailedError, ValidationError
from relay_api.schemas import ErrorResponse, UploadData, UploadResponse
from relay_api.service.upload import build_relayed_file, describe_result, relay_upload

logger = logging.getLogger("relay.upload")

router = APIRouter(prefix="/upload", tags=["upload"])

UPLOAD_ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "No file, or an empty file"},
    413: {"model": ErrorResponse, "description": "File exceeds the upload limit"},
    500: {"model": ErrorResponse, "description": "Local fallback could not store the file"},
}


@router.post("", response_model=UploadResponse, responses=UPLOAD_ERROR_RESPONSES)
async def upload(request: Request, file: UploadFile | None = File(default=None)) -> UploadResponse:
    settings = request.app.state.settings
    metrics = request.app.state.metrics
    if file is None:
        raise ValidationError("no file received")
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise PayloadTooLargeError()

    content = await file.read()
    logger.info("receive file: %s %s %d", file.filename, file.content_type, len(content))
    if not content:
        raise ValidationError("received file is empty")
    if len(content) > settings.max_upload_bytes:
        raise PayloadTooLargeError()

    relayed = build_relayed_file(content, file.filename, file.content_type)
    try:
        result = await relay_upload(relayed, request.app.state.upload_strategies)
    except Exception as exc:  # noqa: BLE001
        logger.exception("upload relay failed for %s", relayed.safe_name)
        metrics.record_upload("failed")
        raise UploadFailedError(error=str(exc)) from exc

    metrics.record_upload(result.host_label)
    logger.info("upload stored via %s", result.host_label, extra={"upload_host": result.host_label})
    return UploadResponse(
        data=UploadData(url=result.url, is_public=result.is_public),
        msg=describe_result(result),
    )
