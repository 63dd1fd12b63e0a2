"""Built-in comparison engines backed by Pillow."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Optional

from PIL import Image, ImageChops, ImageColor

from visreg.adapters.protocols import StorageAdapter
from visreg.constants import (
    DEFAULT_DIFF_COLOR,
    KIND_BASE,
    KIND_CURRENT,
    KIND_DIFF,
    REASON_ERROR,
    REASON_MISSING_BASE,
    REASON_MISSING_CURRENT,
    REASON_PIXEL_DIFF,
)
from visreg.models.test_result import EngineResult

logger = logging.getLogger(__name__)


def _decode(data: bytes) -> Image.Image:
    with Image.open(io.BytesIO(data)) as img:
        return img.convert("RGBA")


def _max_channel_difference(current: Image.Image, base: Image.Image) -> Image.Image:
    """Grayscale image whose value is the largest per-channel delta of each pixel."""
    bands = ImageChops.difference(current, base).split()
    result = bands[0]
    for band in bands[1:]:
        result = ImageChops.lighter(result, band)
    return result


def render_diff_image(base: Image.Image, mask: Image.Image, diff_color: str) -> bytes:
    """Paint masked pixels in ``diff_color`` over a faded grayscale baseline."""
    faded = Image.blend(
        base.convert("L").convert("RGBA"),
        Image.new("RGBA", base.size, (255, 255, 255, 255)),
        0.7,
    )
    overlay = Image.new("RGBA", base.size, ImageColor.getcolor(diff_color, "RGBA"))
    faded.paste(overlay, mask=mask)
    buf = io.BytesIO()
    faded.save(buf, format="PNG")
    return buf.getvalue()


class _PixelDiff:
    def __init__(self, mismatched: int, total: int, diff_png: bytes):
        self.mismatched = mismatched
        self.total = total
        self.diff_png = diff_png

    @property
    def percentage(self) -> float:
        return round(self.mismatched / self.total * 100, 2) if self.total else 0.0


class PillowEngine:
    """Shared flow for engines that diff two decoded PNGs pixel by pixel.

    Subclasses decide which per-pixel delta counts as a mismatch and whether
    the resulting mismatch count is acceptable.
    """

    name = "pillow"

    def pixel_cutoff(self, threshold: float) -> int:
        raise NotImplementedError

    def is_match(self, mismatched: int, total: int, threshold: float) -> bool:
        raise NotImplementedError

    async def compare(
        self,
        storage: StorageAdapter,
        filename: str,
        threshold: float,
        diff_color: Optional[str] = None,
    ) -> EngineResult:
        if not await storage.exists(KIND_CURRENT, filename):
            return EngineResult(match=False, reason=REASON_MISSING_CURRENT)
        if not await storage.exists(KIND_BASE, filename):
            return EngineResult(match=False, reason=REASON_MISSING_BASE)

        current_bytes, base_bytes = await asyncio.gather(
            storage.read(KIND_CURRENT, filename),
            storage.read(KIND_BASE, filename),
        )
        try:
            diff = await asyncio.to_thread(
                self._diff, current_bytes, base_bytes, threshold,
                diff_color or DEFAULT_DIFF_COLOR,
            )
        except (OSError, ValueError) as e:
            logger.warning("%s could not compare %s: %s", self.name, filename, e)
            return EngineResult(match=False, reason=REASON_ERROR)

        if diff is None:
            logger.warning("%s: image dimensions differ for %s", self.name, filename)
            return EngineResult(match=False, reason=REASON_ERROR)

        if diff.mismatched:
            await storage.write(KIND_DIFF, filename, diff.diff_png)

        if self.is_match(diff.mismatched, diff.total, threshold):
            return EngineResult(match=True)
        return EngineResult(
            match=False, reason=REASON_PIXEL_DIFF, diff_percentage=diff.percentage,
        )

    def _diff(
        self, current_bytes: bytes, base_bytes: bytes, threshold: float, diff_color: str,
    ) -> _PixelDiff | None:
        current = _decode(current_bytes)
        base = _decode(base_bytes)
        if current.size != base.size:
            return None

        cutoff = self.pixel_cutoff(threshold)
        delta = _max_channel_difference(current, base)
        mask = delta.point(lambda v: 255 if v > cutoff else 0)
        mismatched = mask.histogram()[255]
        total = base.size[0] * base.size[1]
        diff_png = render_diff_image(base, mask, diff_color) if mismatched else b""
        return _PixelDiff(mismatched, total, diff_png)


class PixelEngine(PillowEngine):
    """Strict engine: ``threshold`` is the per-pixel colour sensitivity (0..1).

    A pixel mismatches when any channel moves by more than ``threshold * 255``;
    the images match only when no pixel mismatches.
    """

    name = "pixel"

    def pixel_cutoff(self, threshold: float) -> int:
        return int(round(threshold * 255))

    def is_match(self, mismatched: int, total: int, threshold: float) -> bool:
        return mismatched == 0


class ToleranceEngine(PillowEngine):
    """Lenient engine: ``threshold`` is the accepted share of changed pixels.

    Per-channel deltas up to 40 are treated as anti-aliasing and font
    rendering noise.
    """

    name = "tolerance"
    channel_tolerance = 40

    def pixel_cutoff(self, threshold: float) -> int:
        return self.channel_tolerance

    def is_match(self, mismatched: int, total: int, threshold: float) -> bool:
        if total == 0:
            return True
        return mismatched / total <= threshold


def builtin_engines() -> list[PillowEngine]:
    return [PixelEngine(), ToleranceEngine()]
