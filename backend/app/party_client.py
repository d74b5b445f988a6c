import base64
import logging
import mimetypes
import os
import threading
from typing import Callable, Optional, Tuple, Union

import httpx

from .models import PoseComparisonResult
from .stream_reader import read_verdict

logger = logging.getLogger(__name__)

ImageInput = Union[str, os.PathLike, Tuple[bytes, str]]


class ConnectionLostError(Exception):
    pass


def load_image(image: ImageInput) -> Tuple[bytes, str]:
    """Akzeptiert einen Dateipfad oder ein (bytes, mime_type)-Paar."""
    if isinstance(image, tuple):
        return image
    path = os.fspath(image)
    mime_type, _ = mimetypes.guess_type(path)
    with open(path, "rb") as f:
        return f.read(), mime_type or "application/octet-stream"


class PoseOffClient:
    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 120,
                 http_client: Optional[httpx.Client] = None):
        self.http_client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self):
        self.http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def compare(self, target: ImageInput, attempt: ImageInput) -> PoseComparisonResult:
        target_bytes, target_type = load_image(target)
        attempt_bytes, attempt_type = load_image(attempt)
        files = {
            "targetImage": ("target", target_bytes, target_type),
            "attemptImage": ("attempt", attempt_bytes, attempt_type),
        }
        try:
            r = self.http_client.post("/compare", files=files)
        except httpx.TransportError as e:
            logger.exception("Request failed")
            raise ConnectionLostError("Connection lost. Try again!") from e
        if not httpx.codes.is_success(r.status_code):
            logger.error(f"Request failed ({r.status_code}): {r.text}")
            raise ConnectionLostError("Something went wrong. Try again!")
        return PoseComparisonResult.model_validate_json(r.text)

    def compare_stream(
        self,
        target: ImageInput,
        attempt: ImageInput,
        on_partial: Optional[Callable[[str], None]] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> PoseComparisonResult:
        """
        Sendet beide Bilder als Base64-JSON an /api/compare und liest die Antwort stückweise.
        on_partial erhält den vorläufigen Feedback-Text; stop_event beendet nur das Lesen.
        """
        payload = {}
        for key, image in (("targetImage", target), ("attemptImage", attempt)):
            data, mime_type = load_image(image)
            payload[key] = {"data": base64.b64encode(data).decode(), "type": mime_type}

        should_stop = stop_event.is_set if stop_event is not None else None
        try:
            with self.http_client.stream("POST", "/api/compare", json=payload) as r:
                if not httpx.codes.is_success(r.status_code):
                    r.read()
                    logger.error(f"Request failed ({r.status_code}): {r.text}")
                    raise ConnectionLostError("Failed to start stream")
                return read_verdict(r.iter_text(), on_partial=on_partial, should_stop=should_stop)
        except httpx.TransportError as e:
            logger.exception("Stream failed")
            raise ConnectionLostError("Connection lost. Try again!") from e
