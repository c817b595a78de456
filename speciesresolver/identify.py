from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import BinaryIO

import structlog

from .models import IdentificationResult
from .resolvers.base import VisionClient

logger = structlog.get_logger()

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024
ALLOWED_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".webp"})

_DATA_URL_PREFIX = re.compile(r"^\s*data:[^,]*;base64,", re.IGNORECASE)


@dataclass(slots=True)
class UploadedImage:
    filename: str
    size: int
    stream: BinaryIO

    @staticmethod
    def from_bytes(filename: str, data: bytes) -> UploadedImage:
        return UploadedImage(filename=filename, size=len(data), stream=io.BytesIO(data))


@dataclass(slots=True)
class IdentifyRequest:
    file: UploadedImage | None = None
    encoded_image: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class IdentificationService:
    """Validate an inbound image and hand it to the vision client.

    Validation happens before any network call. The service never raises:
    every problem, including unexpected exceptions, comes back as a failed
    :class:`IdentificationResult` with a message fit for display.
    """

    def __init__(self, vision: VisionClient, *, max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES):
        self._vision = vision
        self._max_bytes = max_image_bytes
        self._max_label = _megabytes_label(max_image_bytes)

    def identify(self, request: IdentifyRequest) -> IdentificationResult:
        try:
            if request.file is not None:
                error = self._validate_file(request.file)
                if error:
                    return IdentificationResult.failure(error)
                # the declared size may lie; never buffer past the limit
                image_bytes = request.file.stream.read(self._max_bytes + 1)
                if len(image_bytes) > self._max_bytes:
                    return IdentificationResult.failure(f"File too large (max {self._max_label})")
            elif request.encoded_image:
                image_bytes = _decode_base64(request.encoded_image)
                if image_bytes is None:
                    return IdentificationResult.failure("Invalid base64 image data")
                if len(image_bytes) > self._max_bytes:
                    return IdentificationResult.failure(
                        f"Image too large (max {self._max_label})"
                    )
            else:
                return IdentificationResult.failure("No image provided")

            result = self._vision.identify(image_bytes, request.latitude, request.longitude)
        except Exception as exc:  # noqa: BLE001
            logger.error("identify_failed", error=str(exc))
            return IdentificationResult.failure(f"Service error: {exc}")

        if result.success:
            logger.info(
                "identify_succeeded",
                scientific_name=result.scientific_name,
                confidence=result.confidence,
                candidates=len(result.candidates),
            )
        else:
            logger.info("identify_rejected", error=result.error)
        return result

    def _validate_file(self, file: UploadedImage) -> str | None:
        if file.size <= 0:
            return "File is empty"
        if file.size > self._max_bytes:
            return f"File too large (max {self._max_label})"
        if PurePath(file.filename).suffix.lower() not in ALLOWED_EXTENSIONS:
            return "Invalid file type. Allowed: JPG, PNG, WebP"
        return None


def _decode_base64(encoded: str) -> bytes | None:
    payload = _DATA_URL_PREFIX.sub("", encoded, count=1)
    payload = "".join(payload.split())
    if not payload:
        return None
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        return None


def _megabytes_label(size: int) -> str:
    megabytes = size / (1024 * 1024)
    return f"{megabytes:g}MB"


__all__ = ["IdentificationService", "IdentifyRequest", "UploadedImage"]
