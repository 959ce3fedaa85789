"""
P/ECE LCD Screenshot
====================

Captures the 128x88 LCD framebuffer from a running P/ECE and renders it
as text art or as a greyscale PNG.

Capture Sequence
----------------
1. Pause the device so the framebuffer stops changing
2. Query the display descriptor (geometry + framebuffer address)
3. Read 88 rows of 128 bytes, one byte per pixel
4. Resume the device (always, even when a read fails)

Pixel Values
------------
Each framebuffer byte holds a 2-bit grey level. 3 is the blank LCD
background and 0 the darkest shade:

    3 -> " "   2 -> "░"   1 -> "▒"   0 -> "▓"   other -> "X"

Values outside 0-3 are rendered as "X" rather than rejected.
"""

import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from PIL import Image

if TYPE_CHECKING:
    from piece_sdk.comms.session import DeviceSession

# Configure module logger
logger = logging.getLogger(__name__)


GLYPHS: Final[dict[int, str]] = {
    3: " ",
    2: "░",
    1: "▒",
    0: "▓",
}
UNKNOWN_GLYPH: Final[str] = "X"

# Grey levels for PNG output; unknown values are drawn white
GREY_LEVELS: Final[dict[int, int]] = {
    3: 200,
    2: 140,
    1: 80,
    0: 24,
}
UNKNOWN_GREY: Final[int] = 255


def glyph_for(value: int) -> str:
    """Map one framebuffer byte to its text glyph."""
    return GLYPHS.get(value, UNKNOWN_GLYPH)


@dataclass(frozen=True)
class Screenshot:
    """
    One captured frame.

    Attributes:
        width: Pixels per row
        height: Number of rows
        pixels: Row-major framebuffer bytes (width * height)
    """

    width: int
    height: int
    pixels: bytes

    def __post_init__(self) -> None:
        if len(self.pixels) != self.width * self.height:
            raise ValueError(
                f"Expected {self.width * self.height} pixels, got {len(self.pixels)}"
            )

    def row(self, y: int) -> bytes:
        return self.pixels[y * self.width:(y + 1) * self.width]

    def text_lines(self) -> list[str]:
        return ["".join(glyph_for(p) for p in self.row(y)) for y in range(self.height)]

    def to_text(self) -> str:
        """Render the frame as text art, one line per pixel row."""
        return "\n".join(self.text_lines())

    def render_image(self, scale: int = 3) -> bytes:
        """
        Render the frame as a greyscale PNG.

        Args:
            scale: Integer pixel scale factor (default 3)

        Returns:
            PNG image bytes
        """
        if scale < 1:
            raise ValueError(f"Scale must be at least 1, got {scale}")

        grey = bytes(GREY_LEVELS.get(p, UNKNOWN_GREY) for p in self.pixels)
        img = Image.frombytes("L", (self.width, self.height), grey)
        if scale > 1:
            img = img.resize((self.width * scale, self.height * scale), Image.Resampling.NEAREST)

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
        return buffer.getvalue()


def capture_screen(session: "DeviceSession") -> Screenshot:
    """
    Capture the LCD framebuffer.

    The device stays paused for the whole capture and is resumed on
    every exit path.

    Raises:
        ProtocolError: If the display is not 128x88 (no bitmap is read).
        TransportError: If any transfer fails.
    """
    with session.paused():
        descriptor = session.query_display()
        logger.debug(
            "LCD %dx%d at %#010x",
            descriptor.width, descriptor.height, descriptor.address,
        )
        pixels = bytearray()
        for y in range(descriptor.height):
            pixels += session.get_memory(
                descriptor.address + y * descriptor.width, descriptor.width
            )

    return Screenshot(width=descriptor.width, height=descriptor.height, pixels=bytes(pixels))
