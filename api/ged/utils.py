# api/ged/utils.py
from typing import Optional

from fastapi import UploadFile, HTTPException

from .config import settings
from .schemas import ImagePayload

# Signatures des formats de scan acceptés
IMAGE_MAGIC = {
    b"\xff\xd8\xff": "image/jpeg",
    b"\x89PNG\r\n\x1a\n": "image/png",
    b"GIF87a": "image/gif",
    b"GIF89a": "image/gif",
    b"II*\x00": "image/tiff",
    b"MM\x00*": "image/tiff",
}


def sniff_image_type(head: bytes) -> Optional[str]:
    for magic, mime in IMAGE_MAGIC.items():
        if head.startswith(magic):
            return mime
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return None


async def read_image_validated(file: Optional[UploadFile]) -> Optional[ImagePayload]:
    """
    Lit le scan envoyé avec le formulaire. Aucun fichier (ou fichier vide) -> None.
    Refuse ce qui n'est pas une image (415) ou dépasse MAX_UPLOAD_MB (413).
    """
    if file is None or not file.filename:
        return None

    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(status_code=415, detail="Only image scans are allowed")

    max_bytes = int(settings.MAX_UPLOAD_MB) * 1024 * 1024
    chunks = []
    total = 0
    while True:
        chunk = await file.read(1024 * 1024)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(status_code=413, detail=f"File too large (>{settings.MAX_UPLOAD_MB} MB)")
        chunks.append(chunk)

    data = b"".join(chunks)
    if not data:
        return None

    mime = sniff_image_type(data[:16])
    if mime is None:
        raise HTTPException(status_code=415, detail="Invalid image signature")

    return ImagePayload(data=data, mime_type=mime)
