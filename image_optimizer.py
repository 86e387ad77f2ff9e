# image_optimizer.py
import io
import os
from dataclasses import dataclass

from PIL import Image

MAX_FILE_SIZE = 2 * 1024 * 1024
MAX_WIDTH, MAX_HEIGHT = 1920, 1080
TARGET_SIZE = (1280, 720)
OPTIMIZED_QUALITY = 75
DEFAULT_QUALITY = 80


@dataclass
class PreparedImage:
    data: bytes
    original_bytes: int
    resized: bool = False

    @property
    def optimized_bytes(self):
        return len(self.data)


def needs_optimization(file_size, width, height):
    return file_size > MAX_FILE_SIZE or width > MAX_WIDTH or height > MAX_HEIGHT


def _to_rgb(img):
    # Composite alpha onto white, JPEG has no transparency
    if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
        alpha = img.convert("RGBA")
        background = Image.new("RGBA", alpha.size, (255, 255, 255, 255))
        return Image.alpha_composite(background, alpha).convert("RGB")
    return img.convert("RGB")


def prepare_image(path):
    """Re-encodes an image as JPEG for the vision model.

    Files over 2 MB or larger than 1920x1080 are shrunk to fit inside
    1280x720 (never enlarged) and saved at quality 75. Raises OSError when
    the file cannot be read, PIL.UnidentifiedImageError when it is not an
    image Pillow can decode.
    """
    original_bytes = os.path.getsize(path)
    with Image.open(path) as img:
        resized = needs_optimization(original_bytes, img.width, img.height)
        rgb = _to_rgb(img)

    if resized:
        rgb.thumbnail(TARGET_SIZE, Image.Resampling.LANCZOS)
    buf = io.BytesIO()
    rgb.save(buf, format="JPEG", quality=OPTIMIZED_QUALITY if resized else DEFAULT_QUALITY)
    return PreparedImage(buf.getvalue(), original_bytes, resized)
