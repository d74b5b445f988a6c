import os
import logging
from typing import Optional, Tuple

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse
from pydantic import ValidationError
from fastapi.concurrency import run_in_threadpool
import uvicorn
from dotenv import load_dotenv

from backend.app.gemini_client import GeminiClient, MissingCredentialError, UpstreamError
from backend.app.models import CompareStreamRequest, PoseComparisonResult
from backend.app.utils import base64_to_image_bytes

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger(__name__)

VERSION = "1.0.0"
STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


app = FastAPI(title="Pose Off!")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_client() -> GeminiClient:
    # Pro Anfrage lesen, damit ein fehlender Key jede Anfrage mit 500 beantwortet
    return GeminiClient(os.getenv("GEMINI_API_KEY"))


@app.exception_handler(MissingCredentialError)
async def missing_credential_handler(request: Request, exc: MissingCredentialError):
    logger.error(str(exc))
    return PlainTextResponse("API Key not configured", status_code=500)


@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    return PlainTextResponse(str(exc), status_code=502)


def images_required() -> PlainTextResponse:
    return PlainTextResponse("Images required", status_code=400)


async def read_uploads(target: Optional[UploadFile], attempt: Optional[UploadFile]) -> Optional[Tuple[bytes, str, bytes, str]]:
    """Liest beide Uploads als Rohbytes; None, wenn eines fehlt oder leer ist."""
    if not target or not attempt:
        return None
    target_bytes = await target.read()
    attempt_bytes = await attempt.read()
    if not target_bytes or not attempt_bytes:
        return None
    return target_bytes, target.content_type or "", attempt_bytes, attempt.content_type or ""


@app.get("/")
async def version():
    return {"name": "pose-off", "version": VERSION}


@app.post("/compare", response_model=PoseComparisonResult)
async def compare_poses(
    targetImage: Optional[UploadFile] = File(None),
    attemptImage: Optional[UploadFile] = File(None),
    client: GeminiClient = Depends(get_client),
):
    images = await read_uploads(targetImage, attemptImage)
    if images is None:
        return images_required()

    result = await run_in_threadpool(client.compare_poses, *images)
    logger.info(f"Urteil: score={result['score']}")
    return result


@app.post("/compare/stream")
async def compare_poses_stream(
    targetImage: Optional[UploadFile] = File(None),
    attemptImage: Optional[UploadFile] = File(None),
    client: GeminiClient = Depends(get_client),
):
    images = await read_uploads(targetImage, attemptImage)
    if images is None:
        return images_required()

    chunks = await run_in_threadpool(client.compare_poses_stream, *images)
    return StreamingResponse(chunks, media_type=STREAM_MEDIA_TYPE)


@app.post("/api/compare")
async def compare_poses_json_stream(request: Request, client: GeminiClient = Depends(get_client)):
    try:
        body = CompareStreamRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return images_required()

    if not body.targetImage or not body.attemptImage or not body.targetImage.data or not body.attemptImage.data:
        return images_required()

    try:
        target = base64_to_image_bytes(body.targetImage.data)
        attempt = base64_to_image_bytes(body.attemptImage.data)
    except ValueError as e:
        logger.warning(str(e))
        return PlainTextResponse("Invalid image data", status_code=400)

    if not target or not attempt:
        return images_required()

    chunks = await run_in_threadpool(
        client.compare_poses_stream, target, body.targetImage.type, attempt, body.attemptImage.type
    )
    return StreamingResponse(chunks, media_type=STREAM_MEDIA_TYPE)


if __name__ == "__main__":
    uvicorn.run(
        "backend.app.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=False,
    )
