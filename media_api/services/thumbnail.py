import io
import logging
from typing import Optional, Union

from PIL import Image, ImageDraw, ImageFont

from media_api.errors import DecodeError, EncodeError
from media_api.schemas import Bounds, Thumbnail

logger = logging.getLogger(__name__)

THUMBNAIL_MIME = "image/jpeg"

CAPTION_MARGIN = 16
CAPTION_MIN_SIZE = 24
CAPTION_CHAR_WIDTH = 7
CAPTION_FONT_SIZE = 13
CAPTION_ELLIPSIS = ".."


def truncate_caption(caption: str, width: int) -> str:
    """Cut ``caption`` to the number of characters that fit in ``width`` px."""
    max_len = max(width // CAPTION_CHAR_WIDTH, 0)
    if len(caption) > max_len:
        return caption[:max_len] + CAPTION_ELLIPSIS
    return caption


class ImageRenderer:
    """Decode, shrink, caption and re-encode an image as a JPEG thumbnail."""

    def __init__(self, size: int = 256, quality: int = 90) -> None:
        self.size = size
        self.quality = quality

    def render(self, data: bytes, caption: Optional[str] = None) -> Thumbnail:
        image = self._decode(data)
        image.thumbnail((self.size, self.size), Image.Resampling.NEAREST)
        if image.mode != "RGB":
            image = image.convert("RGB")

        if caption:
            self._draw_caption(image, caption)

        return Thumbnail(
            data=self._encode(image),
            mime=THUMBNAIL_MIME,
            bounds=Bounds(width=image.width, height=image.height),
        )

    def _decode(self, data: bytes) -> Image.Image:
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise DecodeError(f"unsupported image: {exc}") from exc
        return image

    def _encode(self, image: Image.Image) -> bytes:
        buffer = io.BytesIO()
        try:
            image.save(buffer, format="JPEG", quality=self.quality)
        except (OSError, ValueError) as exc:
            raise EncodeError(f"failed to encode thumbnail: {exc}") from exc
        return buffer.getvalue()

    def _draw_caption(self, image: Image.Image, caption: str) -> None:
        width = image.width - CAPTION_MARGIN
        height = image.height - CAPTION_MARGIN
        if width <= CAPTION_MIN_SIZE or height <= CAPTION_MIN_SIZE:
            return

        text = truncate_caption(caption, image.width)
        font = ImageFont.load_default(size=CAPTION_FONT_SIZE)
        draw = ImageDraw.Draw(image)
        # Black shadow one pixel below-right of the white text.
        _draw_baseline_text(draw, (7, height + 7), text, font, "black")
        _draw_baseline_text(draw, (6, height + 6), text, font, "white")


def _draw_baseline_text(
    draw: ImageDraw.ImageDraw,
    xy: tuple[int, int],
    text: str,
    font: Union[ImageFont.ImageFont, ImageFont.FreeTypeFont],
    fill: str,
) -> None:
    x, y = xy
    if isinstance(font, ImageFont.FreeTypeFont):
        draw.text((x, y), text, font=font, fill=fill, anchor="ls")
        return
    # Bitmap fonts only support top-left anchoring.
    top = font.getbbox(text)[3]
    draw.text((x, y - top), text, font=font, fill=fill)
