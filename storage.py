"""Product image files, written to UPLOAD_DIR and served under /uploads."""
import logging
import os
import uuid
from typing import List, Optional

from fastapi import HTTPException, UploadFile

from config import MAX_PRODUCT_IMAGES, UPLOAD_DIR

logger = logging.getLogger(__name__)

URL_PREFIX = "/uploads/"


def check_image_count(files: List[UploadFile], required: bool) -> None:
    if required and not files:
        raise HTTPException(status_code=400, detail="At least one image is required")
    if len(files) > MAX_PRODUCT_IMAGES:
        raise HTTPException(status_code=400, detail=f"Maximum {MAX_PRODUCT_IMAGES} images allowed")
    for f in files:
        if not (f.content_type or "").startswith("image/"):
            raise HTTPException(status_code=400, detail=f"{f.filename} is not an image")


def save_images(files: List[UploadFile]) -> List[str]:
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    urls = []
    for f in files:
        ext = os.path.splitext(f.filename or "")[1].lower() or ".jpg"
        name = f"{uuid.uuid4().hex}{ext}"
        with open(os.path.join(UPLOAD_DIR, name), "wb") as out:
            out.write(f.file.read())
        urls.append(URL_PREFIX + name)
    logger.info("Stored %d product image(s)", len(urls))
    return urls


def delete_images(urls: List[str]) -> None:
    for url in urls:
        # images hosted elsewhere are left alone
        if not url.startswith(URL_PREFIX):
            continue
        path = os.path.join(UPLOAD_DIR, os.path.basename(url))
        try:
            os.remove(path)
        except FileNotFoundError:
            logger.warning("Image already gone: %s", path)


def image_path(filename: str) -> Optional[str]:
    """Path of a stored image, None when it does not exist."""
    if filename != os.path.basename(filename):
        return None
    path = os.path.join(UPLOAD_DIR, filename)
    return path if os.path.isfile(path) else None
