"""Blueprint image preprocessing.

Downscales photos to a bounded size and boosts contrast and edge detail
before they are sent to the reasoning service. Files that are not JPEG or
PNG (PDF, TIFF, etc.) pass through untouched.
"""

import asyncio
import io
from typing import List, Optional, Sequence

import structlog
from PIL import Image, ImageFilter, ImageOps

from config.settings import settings
from models.analysis import BlueprintImage

logger = structlog.get_logger(__name__)

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
}


def preprocess_image(image: BlueprintImage, max_dimension: Optional[int] = None) -> BlueprintImage:
    """Resize, sharpen and normalize one image.

    Never enlarges. Raises on undecodable input; use
    ``preprocess_images`` for the fail-soft batch behavior.
    """
    if not image.is_raster or not image.data:
        return image

    max_dimension = max_dimension or settings.image_max_dimension
    pil_format = _PIL_FORMATS[image.content_type]

    with Image.open(io.BytesIO(image.data)) as source:
        processed = ImageOps.exif_transpose(source)
        if processed.mode not in ("RGB", "L"):
            processed = processed.convert("RGB")
        processed.thumbnail((max_dimension, max_dimension), Image.LANCZOS)
        processed = processed.filter(ImageFilter.SHARPEN)
        processed = ImageOps.autocontrast(processed)

        buffer = io.BytesIO()
        processed.save(buffer, format=pil_format)

    return image.model_copy(update={"data": buffer.getvalue()})


def _preprocess_or_original(image: BlueprintImage, max_dimension: Optional[int]) -> BlueprintImage:
    try:
        return preprocess_image(image, max_dimension)
    except Exception as e:
        logger.warning(
            "image_preprocess_failed",
            filename=image.filename,
            content_type=image.content_type,
            error=str(e),
        )
        return image


async def preprocess_images(
    images: Sequence[BlueprintImage],
    max_dimension: Optional[int] = None,
) -> List[BlueprintImage]:
    """Preprocess images concurrently in worker threads.

    A failure on one image falls back to that image's original bytes and
    does not affect the others. Order is preserved.
    """
    return list(await asyncio.gather(*(
        asyncio.to_thread(_preprocess_or_original, image, max_dimension)
        for image in images
    )))
