"""
Utilities for loading wireframe images and turning them into generation requests.
"""

import base64
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple, Union

from PIL import Image

from wireframe_react.models import GenerationRequest


# Longest side sent to the model; larger uploads are downscaled
MAX_IMAGE_SIDE = 1600

ImageSource = Union[str, Path, bytes, Image.Image]


def is_remote_image(value) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://", "data:image/"))


class WireframeLoader:
    """Loads, normalizes and encodes wireframe images."""

    def __init__(self, max_side: int = MAX_IMAGE_SIDE):
        """
        Initialize wireframe loader.

        Args:
            max_side: Longest side (in pixels) of normalized images.
        """
        self.max_side = max_side

    def load_image(self, image_path: Union[str, Path]) -> Image.Image:
        """
        Load an image from disk.

        Args:
            image_path: Path to the image file.

        Returns:
            PIL Image object.
        """
        image_path = Path(image_path)
        if not image_path.exists():
            raise FileNotFoundError(f"Image not found: {image_path}")

        return Image.open(image_path).convert("RGB")

    def load_bytes(self, data: bytes) -> Image.Image:
        """Load an image from raw bytes (e.g. an upload)."""
        return Image.open(BytesIO(data)).convert("RGB")

    def normalize(self, image: Image.Image) -> Image.Image:
        """
        Downscale so the longest side fits ``max_side``, keeping aspect ratio.

        Args:
            image: Input PIL Image.

        Returns:
            Normalized copy of the image.
        """
        image = image.copy()
        image.thumbnail((self.max_side, self.max_side), Image.Resampling.LANCZOS)
        return image

    def image_to_base64(self, image: Image.Image, format: str = "PNG") -> str:
        """
        Convert PIL Image to base64 string.

        Args:
            image: PIL Image object.
            format: Image format (PNG, JPEG, etc.).

        Returns:
            Base64-encoded string.
        """
        buffer = BytesIO()
        image.save(buffer, format=format)
        return base64.b64encode(buffer.getvalue()).decode("utf-8")

    def to_data_uri(self, image: Image.Image, format: str = "PNG") -> str:
        mime = "jpeg" if format.upper() in ("JPG", "JPEG") else format.lower()
        return f"data:image/{mime};base64,{self.image_to_base64(image, format)}"

    def validate_wireframe(self, image_path: Union[str, Path]) -> Tuple[bool, Optional[str]]:
        """
        Validate that a wireframe image exists and is readable.

        Args:
            image_path: Path to validate.

        Returns:
            Tuple of (is_valid, error_message).
        """
        image_path = Path(image_path)
        if not image_path.exists():
            return False, f"Wireframe not found: {image_path}"

        try:
            self.load_image(image_path)
        except (OSError, ValueError) as e:
            return False, str(e)
        return True, None

    def image_payload(self, source: ImageSource, normalize: bool = True) -> str:
        """
        Image reference for the model: URLs and data URIs pass through,
        everything else is loaded and encoded as a PNG data URI.
        """
        if is_remote_image(source):
            return source

        if isinstance(source, Image.Image):
            image = source.convert("RGB")
        elif isinstance(source, bytes):
            image = self.load_bytes(source)
        else:
            image = self.load_image(source)

        if normalize:
            image = self.normalize(image)
        return self.to_data_uri(image)

    def build_request(
        self,
        source: ImageSource,
        description: str,
        model_id: str,
        request_id: Optional[str] = None,
        normalize: bool = True,
    ) -> GenerationRequest:
        """
        Build a generation request from an image and a description.

        Args:
            source: Path, bytes, PIL image, URL or data URI.
            description: What the user wants built.
            model_id: Selected model identifier.
            request_id: Optional identifier (generated if omitted).
            normalize: Whether to downscale large images.

        Returns:
            GenerationRequest object.
        """
        fields = {
            "model_id": model_id,
            "image_payload": self.image_payload(source, normalize=normalize),
            "description_text": description,
        }
        if request_id:
            fields["request_id"] = request_id
        return GenerationRequest(**fields)
