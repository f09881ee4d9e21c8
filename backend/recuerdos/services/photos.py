from __future__ import annotations

import mimetypes
from dataclasses import dataclass

from recuerdos.core.errors import InvalidInput

JPEG_MAGIC = b"\xFF\xD8\xFF"
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
WEBP_RIFF = b"RIFF"
WEBP_TYPE = b"WEBP"
GIF87A = b"GIF87a"
GIF89A = b"GIF89a"


@dataclass(frozen=True)
class PhotoUpload:
    filename: str
    content_type: str
    data: bytes


def detect_image_content_type(filename: str | None, file_bytes: bytes) -> str | None:
    if file_bytes.startswith(JPEG_MAGIC):
        return "image/jpeg"
    if file_bytes.startswith(PNG_MAGIC):
        return "image/png"
    if file_bytes.startswith(GIF87A) or file_bytes.startswith(GIF89A):
        return "image/gif"
    if len(file_bytes) >= 12 and file_bytes[:4] == WEBP_RIFF and file_bytes[8:12] == WEBP_TYPE:
        return "image/webp"
    # HEIF/HEIC files usually contain `ftypheic`/`ftypheif` around byte offset 4.
    if len(file_bytes) >= 12 and file_bytes[4:8] == b"ftyp" and file_bytes[8:12] in {
        b"heic",
        b"heif",
        b"heix",
        b"hevc",
    }:
        return "image/heic"

    guessed, _ = mimetypes.guess_type(filename or "")
    if guessed and guessed.startswith("image/"):
        return guessed
    return None


def _assert_magic_bytes(content_type: str, file_bytes: bytes, filename: str) -> None:
    if content_type in {"image/jpeg", "image/jpg"} and not file_bytes.startswith(JPEG_MAGIC):
        raise InvalidInput(f"El contenido de {filename} no corresponde a una imagen JPEG")
    if content_type == "image/png" and not file_bytes.startswith(PNG_MAGIC):
        raise InvalidInput(f"El contenido de {filename} no corresponde a una imagen PNG")


def validate_photo(
    filename: str | None,
    content_type: str | None,
    file_bytes: bytes | None,
    max_bytes: int,
) -> PhotoUpload:
    """Check an uploaded file and return it with a trustworthy content type."""
    if not file_bytes:
        raise InvalidInput("La foto es obligatoria")
    if len(file_bytes) > max_bytes:
        raise InvalidInput(f"La foto supera el tamaño máximo de {max_bytes // (1024 * 1024)} MB")

    name = filename or "foto"
    if content_type and content_type.startswith("image/"):
        normalized = content_type.lower()
    else:
        normalized = detect_image_content_type(name, file_bytes)
        if normalized is None:
            raise InvalidInput("El archivo debe ser una imagen")

    _assert_magic_bytes(normalized, file_bytes, name)
    return PhotoUpload(filename=name, content_type=normalized, data=file_bytes)
