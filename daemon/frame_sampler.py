"""
Frame sampler: still frame from the live stream → base64 JPEG payload.

Also normalizes uploaded screenshots (any format Pillow reads) into the same
payload, so the recognition agent only ever sees one image shape.
"""
from __future__ import annotations

import asyncio
import base64
import io
import logging
from typing import Optional

from PIL import Image, UnidentifiedImageError

from schemas.errors import NoFrameAvailable

logger = logging.getLogger("wr_tactician.capture")


def strip_data_uri(value: str) -> str:
    """'data:image/jpeg;base64,AAAA' → 'AAAA'. Plain base64 passes through."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


class FrameSampler:
    """Grabs and encodes frames. Holds no stream state of its own."""

    def __init__(self, quality: int = 80):
        self.quality = quality

    def to_jpeg_bytes(self, image: Image.Image) -> bytes:
        if image.mode != "RGB":
            image = image.convert("RGB")
        buf = io.BytesIO()
        image.save(buf, format="JPEG", quality=self.quality)
        return buf.getvalue()

    def to_data_uri(self, image: Image.Image) -> str:
        b64 = base64.b64encode(self.to_jpeg_bytes(image)).decode("utf-8")
        return f"data:image/jpeg;base64,{b64}"

    def encode_image(self, image: Image.Image) -> str:
        return strip_data_uri(self.to_data_uri(image))

    async def grab(self, stream) -> Image.Image:
        if stream is None or not stream.active:
            raise NoFrameAvailable("No active stream")
        frame: Optional[Image.Image] = await asyncio.to_thread(stream.read_frame)
        if frame is None:
            raise NoFrameAvailable("Stream produced no frame")
        return frame

    async def capture(self, stream) -> str:
        """Current frame at native resolution as a pure base64 JPEG."""
        frame = await self.grab(stream)
        payload = self.encode_image(frame)
        logger.debug(f"Captured frame {frame.size[0]}x{frame.size[1]} ({len(payload)} b64 chars)")
        return payload

    async def capture_jpeg(self, stream) -> bytes:
        """Raw JPEG bytes of the current frame, for the page's live preview."""
        return self.to_jpeg_bytes(await self.grab(stream))

    def encode_upload(self, data: bytes) -> str:
        if not data:
            raise NoFrameAvailable("Empty upload")
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError) as e:
            raise NoFrameAvailable(f"Unreadable image upload: {e}")
        return self.encode_image(image)
