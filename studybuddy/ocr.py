import base64
import binascii
import logging
from typing import Callable, Optional, Union

from google.cloud import vision

from studybuddy.config import VisionSettings, build_vision_client
from studybuddy.errors import OCRError

logger = logging.getLogger(__name__)


def decode_image(image: Union[bytes, str]) -> bytes:
    """Accept raw bytes, a base64 string, or a ``data:<mime>;base64,`` URL."""
    if isinstance(image, (bytes, bytearray)):
        return bytes(image)
    payload = image.strip()
    if payload.startswith("data:"):
        _, _, payload = payload.partition(",")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise OCRError(f"Image payload is not valid base64: {exc}") from exc


class VisionOCR:
    """Full-page text detection through Google Cloud Vision."""

    def __init__(
        self,
        client: Optional[vision.ImageAnnotatorClient] = None,
        settings: Optional[VisionSettings] = None,
        client_factory: Callable[[VisionSettings], vision.ImageAnnotatorClient] = build_vision_client,
    ) -> None:
        self._client = client
        self.settings = settings or VisionSettings.from_env()
        self._client_factory = client_factory

    def _get_client(self) -> vision.ImageAnnotatorClient:
        if self._client is None:
            self._client = self._client_factory(self.settings)
        return self._client

    def extract_text(self, image: Union[bytes, str]) -> str:
        """Return the page transcription, or an empty string if no text was found."""
        content = decode_image(image)
        if not content:
            raise OCRError("Image payload is empty")

        response = self._get_client().text_detection(image=vision.Image(content=content))
        if response.error.message:
            raise OCRError(response.error.message)

        annotations = response.text_annotations
        if not annotations:
            logger.info("OCR found no text in a %d byte image", len(content))
            return ""
        # The first annotation spans the whole page; the rest are single words.
        return annotations[0].description
