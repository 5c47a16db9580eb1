"""QR code rendering."""

from typing import Protocol

import segno


class QrRenderer(Protocol):
    """Turns a QR challenge into something a browser can display."""

    def to_data_url(self, challenge: str) -> str:
        """Return a data URL for the challenge."""


class SegnoQrRenderer(QrRenderer):
    """PNG data URLs rendered with segno."""

    def __init__(self, scale: int = 4) -> None:
        self.scale = scale

    def to_data_url(self, challenge: str) -> str:
        """Render the challenge as a PNG data URL."""
        return segno.make(challenge, error="m").png_data_uri(scale=self.scale)
