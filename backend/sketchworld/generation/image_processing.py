"""Sprite post-processing with Pillow.

Every generated image and every extracted animation frame goes through the same
treatment before it reaches the cache: rounded corners with a border
composited onto a coloured background, then a downscale to thumbnail size.
"""

from __future__ import annotations

import io
import logging

from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

_INNER_SIZE = 128
_CORNER_RADIUS = 16
_BORDER_WIDTH = 2
_BORDER_COLOR = (0, 0, 0, 255)

# Veo takes a 9:16 portrait image.
_PORTRAIT_SIZE = (1080, 1920)

# 8 fps, matching the client's sprite animation rate.
_LOOP_FRAME_MS = 125


class ImageProcessingError(ValueError):
    """Input bytes are not a decodable image."""


def _open(data: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageProcessingError(f"Unreadable image: {e}") from e
    return img.convert("RGBA")


def _to_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _rounded_mask(size: tuple[int, int], radius: int) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle((0, 0, size[0] - 1, size[1] - 1), radius=radius, fill=255)
    return mask


def apply_rounded_corners_and_border(
    data: bytes,
    inner_size: int = _INNER_SIZE,
    radius: int = _CORNER_RADIUS,
    border: int = _BORDER_WIDTH,
    border_color: tuple[int, int, int, int] = _BORDER_COLOR,
) -> bytes:
    """Round the image's corners and set it on a bordered rounded plate."""
    img = _open(data).resize((inner_size, inner_size), Image.Resampling.LANCZOS)
    img.putalpha(_rounded_mask(img.size, radius + border))

    outer = inner_size + 4 * border
    plate = Image.new("RGBA", (outer, outer), (0, 0, 0, 0))
    plate_mask = _rounded_mask((outer, outer), radius + 2 * border)
    plate.paste(Image.new("RGBA", (outer, outer), border_color), (0, 0), plate_mask)

    offset = 2 * border
    plate.alpha_composite(img, (offset, offset))
    return _to_png(plate)


def resize_image(data: bytes, size: int) -> bytes:
    img = _open(data).resize((size, size), Image.Resampling.LANCZOS)
    return _to_png(img)


def process_sprite(data: bytes, size: int) -> bytes:
    """Full treatment used for static images and animation frames alike."""
    return resize_image(apply_rounded_corners_and_border(data), size)


def pad_to_portrait(data: bytes, size: tuple[int, int] = _PORTRAIT_SIZE) -> bytes:
    """Scale the image up or down to fit a portrait canvas, without cropping."""
    img = ImageOps.contain(_open(data), size, Image.Resampling.LANCZOS)
    canvas = Image.new("RGBA", size, (0, 0, 0, 255))
    canvas.alpha_composite(img, ((size[0] - img.width) // 2, (size[1] - img.height) // 2))
    return _to_png(canvas)


def build_loop_animation(frames: list[bytes], frame_ms: int = _LOOP_FRAME_MS) -> bytes:
    """Assemble frames into an endlessly looping GIF."""
    if not frames:
        raise ImageProcessingError("No frames to animate")
    images = [_open(f) for f in frames]
    buf = io.BytesIO()
    images[0].save(
        buf,
        format="GIF",
        save_all=True,
        append_images=images[1:],
        duration=frame_ms,
        loop=0,
        disposal=2,
    )
    logger.debug("Built %d-frame loop (%d bytes)", len(images), buf.tell())
    return buf.getvalue()
