import io

from PIL import Image
import pytest

from gamecatalog.services.images import (
    ImageProcessingError,
    ImageResizer,
    derive_resized_key,
    resize_image_bytes,
)
from gamecatalog.stores.objects import ObjectStore


def _image_bytes(size: tuple[int, int], fmt: str = "PNG", mode: str = "RGB") -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size).save(buf, format=fmt)
    return buf.getvalue()


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


@pytest.fixture
def objects(s3, settings) -> ObjectStore:
    return ObjectStore(s3, settings)


@pytest.mark.parametrize(
    "key,expected",
    [
        ("game-images/cover.png", "game-images/cover_resized.png"),
        ("game-images/a.b.jpeg", "game-images/a.b_resized.jpeg"),
        ("game-images/noext", "game-images/noext_resized"),
        ("cover.png", "cover_resized.png"),
        ("game-images/.hidden", "game-images/.hidden_resized"),
    ],
)
def test_derive_resized_key(key, expected):
    assert derive_resized_key(key) == expected


def test_resize_keeps_aspect_ratio():
    data, content_type, width, height = resize_image_bytes(_image_bytes((1600, 900)), 800)

    assert (width, height) == (800, 450)
    assert content_type == "image/png"
    assert _open(data).size == (800, 450)


def test_resize_never_upscales():
    _, _, width, height = resize_image_bytes(_image_bytes((300, 200)), 800)

    assert (width, height) == (300, 200)


def test_cmyk_jpeg_is_converted_to_rgb():
    data, content_type, _, _ = resize_image_bytes(_image_bytes((1000, 1000), fmt="JPEG", mode="CMYK"), 500, quality=70)

    assert content_type == "image/jpeg"
    assert _open(data).mode == "RGB"


def test_garbage_is_rejected():
    with pytest.raises(ImageProcessingError):
        resize_image_bytes(b"definitely not an image", 800)


@pytest.mark.asyncio
async def test_process_writes_resized_copy(objects, s3, settings):
    await objects.upload("game-images/cover.png", _image_bytes((1600, 900)), "image/png", metadata={"owner": "u1"})

    result = await ImageResizer(objects, settings).process("game-images/cover.png")

    assert result.resized_key == "game-images/cover_resized.png"
    assert (result.width, result.height) == (800, 450)
    stored = s3.objects["game-images/cover_resized.png"]
    assert stored["Metadata"] == {"owner": "u1", "resized": "true"}
    assert stored["ContentType"] == "image/png"
    assert _open(stored["Body"]).size == (800, 450)
    # Original untouched
    assert _open(s3.objects["game-images/cover.png"]["Body"]).size == (1600, 900)


@pytest.mark.asyncio
async def test_second_resize_of_resized_key_is_a_noop(objects, s3, settings):
    await objects.upload("game-images/cover.png", _image_bytes((1600, 900)), "image/png")
    resizer = ImageResizer(objects, settings)

    first = await resizer.process("game-images/cover.png")
    puts_after_first = len(s3.put_calls)
    second = await resizer.process(first.resized_key)

    assert second is None
    assert len(s3.put_calls) == puts_after_first


@pytest.mark.asyncio
async def test_in_place_resize_is_idempotent(objects, s3, settings):
    settings.image_resize_in_place = True
    await objects.upload("game-images/cover.jpg", _image_bytes((2000, 1000), fmt="JPEG"), "image/jpeg")
    resizer = ImageResizer(objects, settings)

    first = await resizer.process("game-images/cover.jpg")
    second = await resizer.process("game-images/cover.jpg")

    assert first.resized_key == "game-images/cover.jpg"
    assert second is None
    assert _open(s3.objects["game-images/cover.jpg"]["Body"]).size == (800, 400)


@pytest.mark.asyncio
async def test_missing_object_is_skipped(objects, s3, settings):
    result = await ImageResizer(objects, settings).process("game-images/deleted.png")

    assert result is None
    assert s3.put_calls == []


@pytest.mark.asyncio
async def test_process_uses_supplied_content(objects, s3, settings):
    await objects.upload("game-images/a.png", b"stale bytes on s3", "image/png")

    result = await ImageResizer(objects, settings).process("game-images/a.png", content=_image_bytes((1200, 1200)))

    assert (result.width, result.height) == (800, 800)


def test_handles_only_configured_prefixes(objects, settings):
    resizer = ImageResizer(objects, settings)

    assert resizer.handles("game-images/a.png")
    assert not resizer.handles("avatars/a.png")
