"""
Thumbnail Service - Single Responsibility: downscale images.

The longer side of the result equals max_dimension; aspect ratio is kept.
Transparent images are flattened onto white before JPEG encoding.
"""
import base64
import io
from typing import Tuple

from PIL import Image, UnidentifiedImageError


class ThumbnailTransform:
    """Pure image transform backed by Pillow."""

    def __init__(self, max_dimension: int = 100, quality: int = 85):
        self._max_dimension = max_dimension
        self._quality = quality

    def target_size(self, width: int, height: int) -> Tuple[int, int]:
        """Scale (width, height) so max(w, h) == max_dimension."""
        scale = min(self._max_dimension / width, self._max_dimension / height)
        return max(1, int(width * scale)), max(1, int(height * scale))

    def transform(self, data: bytes) -> bytes:
        """
        Downscale encoded image bytes.

        Raises:
            ValueError: data is not a decodable image
        """
        try:
            with Image.open(io.BytesIO(data)) as src:
                src.load()
                size = self.target_size(*src.size)
                if src.mode in ("RGBA", "LA") or (src.mode == "P" and "transparency" in src.info):
                    rgba = src.convert("RGBA")
                    canvas = Image.new("RGB", rgba.size, (255, 255, 255))
                    canvas.paste(rgba, mask=rgba.getchannel("A"))
                    rgb = canvas
                else:
                    rgb = src.convert("RGB")
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError(f"cannot decode image: {exc}") from exc

        resized = rgb.resize(size, Image.Resampling.BILINEAR)
        out = io.BytesIO()
        resized.save(out, format="JPEG", quality=self._quality)
        return out.getvalue()

    def transform_base64(self, content: str) -> str:
        """base64 in, base64 JPEG out."""
        try:
            data = base64.b64decode(content, validate=True)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"content is not valid base64: {exc}") from exc
        return base64.b64encode(self.transform(data)).decode("ascii")
