"""Image file inspection for ingestion."""

import io
import mimetypes
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from snaptag.duplicates import compute_content_hash
from snaptag.exceptions import ValidationError


class ImageProcessor:
    """Read the properties SnapTag stores for an image file."""

    SUPPORTED_FORMATS = {".jpg", ".jpeg", ".png", ".gif", ".webp", ".bmp", ".tiff"}

    def is_supported(self, filename: str) -> bool:
        """Check if file format is supported."""
        return Path(filename).suffix.lower() in self.SUPPORTED_FORMATS

    def load_image(self, data: bytes) -> Image.Image:
        """Load image from bytes."""
        return Image.open(io.BytesIO(data))

    def extract_info(self, data: bytes, filename: str) -> dict:
        """Dimensions, MIME type, size and content hash of an image payload."""
        try:
            with self.load_image(data) as img:
                width, height = img.size
                mime_type = Image.MIME.get(img.format or "")
        except (UnidentifiedImageError, OSError) as exc:
            raise ValidationError(f"{filename} is not a readable image: {exc}") from exc

        if not mime_type:
            mime_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        return {
            "width": width,
            "height": height,
            "mime_type": mime_type,
            "file_size": len(data),
            "file_hash": compute_content_hash(data),
        }
