"""Image resize pipeline for uploaded game images.

Flow:
1. HEAD the object; skip if it is gone or already carries the "resized" marker
2. Download the original (unless the caller already has the bytes)
3. Shrink so the longest side fits `image_max_dimension` (aspect kept, no upscaling)
4. Re-encode in the source format and upload under `<stem>_resized<ext>`
   (or over the original when resizing in place), tagged `resized=true`

The marker is what keeps the pipeline idempotent: the resized object lands
under an image prefix too, so its own upload notification comes back through
the queue and must be a no-op.
"""

import asyncio
from dataclasses import dataclass
import io
import logging

from PIL import Image, ImageOps, UnidentifiedImageError

from gamecatalog.settings import Settings
from gamecatalog.stores.objects import ObjectStore

logger = logging.getLogger("uvicorn.error")

# S3 user metadata key (x-amz-meta-resized)
RESIZED_MARKER = "resized"

_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


class ImageProcessingError(RuntimeError):
    pass


@dataclass(frozen=True)
class ResizeResult:
    source_key: str
    resized_key: str
    width: int
    height: int
    content_type: str


def is_resized(metadata: dict[str, str]) -> bool:
    return str(metadata.get(RESIZED_MARKER, "")).lower() == "true"


def derive_resized_key(key: str, suffix: str = "_resized") -> str:
    """Insert `suffix` before the extension: covers/a.png -> covers/a_resized.png."""
    folder, sep, name = key.rpartition("/")
    stem, dot, ext = name.rpartition(".")
    if not dot or not stem:
        return f"{folder}{sep}{name}{suffix}"
    return f"{folder}{sep}{stem}{suffix}.{ext}"


def resize_image_bytes(data: bytes, max_dimension: int, quality: int = 85) -> tuple[bytes, str, int, int]:
    """Decode, shrink and re-encode an image.

    Returns:
        Tuple of (encoded bytes, content type, width, height).
    """
    try:
        with Image.open(io.BytesIO(data)) as original:
            fmt = original.format if original.format in _CONTENT_TYPES else "JPEG"
            img = ImageOps.exif_transpose(original)
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            save_kwargs: dict[str, object] = {}
            if fmt == "JPEG":
                if img.mode not in ("RGB", "L"):
                    img = img.convert("RGB")
                save_kwargs = {"quality": quality, "optimize": True}

            out = io.BytesIO()
            img.save(out, format=fmt, **save_kwargs)
            return out.getvalue(), _CONTENT_TYPES[fmt], img.width, img.height
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot resize image: {e}") from e


class ImageResizer:
    """Resizes images stored under the configured prefixes."""

    def __init__(self, objects: ObjectStore, settings: Settings):
        self._objects = objects
        self.prefixes = tuple(settings.image_prefixes)
        self.max_dimension = settings.image_max_dimension
        self.suffix = settings.image_resized_suffix
        self.in_place = settings.image_resize_in_place
        self.quality = settings.image_jpeg_quality

    def handles(self, key: str) -> bool:
        return key.startswith(self.prefixes)

    async def process(self, key: str, content: bytes | None = None) -> ResizeResult | None:
        """Resize one stored image.

        Args:
            key: Object key of the uploaded image.
            content: Original bytes, if the caller already has them.

        Returns:
            ResizeResult, or None when there was nothing to do.
        """
        info = await self._objects.head(key)
        if info is None:
            logger.warning(f"[resize] {key} no longer exists, nothing to resize")
            return None
        if is_resized(info.metadata):
            logger.info(f"[resize] {key} is already resized, skipping")
            return None

        if content is None:
            content = (await self._objects.download(key)).body

        data, content_type, width, height = await asyncio.to_thread(
            resize_image_bytes, content, self.max_dimension, self.quality
        )

        target = key if self.in_place else derive_resized_key(key, self.suffix)
        await self._objects.upload(
            target,
            data,
            content_type,
            metadata={**info.metadata, RESIZED_MARKER: "true"},
        )
        logger.info(f"[resize] {key} -> {target} ({width}x{height})")
        return ResizeResult(
            source_key=key,
            resized_key=target,
            width=width,
            height=height,
            content_type=content_type,
        )
