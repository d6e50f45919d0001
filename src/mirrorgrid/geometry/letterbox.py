"""Letterbox transforms for fitting one aspect ratio inside another."""

from __future__ import annotations

import math
from dataclasses import dataclass

ASPECT_MATCH_EPSILON = 1e-6


@dataclass(frozen=True)
class LetterboxTransform:
    """Scale and offset, per axis, of content placed inside a viewport.

    All values are in normalized [0, 1] units of the viewport.
    """

    scale_x: float = 1.0
    scale_y: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def _scale(self, axis: str) -> float:
        return self.scale_x if axis == "x" else self.scale_y

    def _offset(self, axis: str) -> float:
        return self.offset_x if axis == "x" else self.offset_y

    @property
    def is_identity(self) -> bool:
        return self == IDENTITY_LETTERBOX

    def content_to_viewport(self, value: float, axis: str) -> float:
        return self._offset(axis) + value * self._scale(axis)

    def viewport_to_content(self, value: float, axis: str) -> float:
        scale = self._scale(axis)
        if scale <= 0:
            return 0.0
        return (value - self._offset(axis)) / scale

    def content_delta_to_viewport(self, value: float, axis: str) -> float:
        return value * self._scale(axis)

    def viewport_delta_to_content(self, value: float, axis: str) -> float:
        scale = self._scale(axis)
        if scale <= 0:
            return 0.0
        return value / scale


IDENTITY_LETTERBOX = LetterboxTransform()


def _normalize_aspect(aspect: float) -> float:
    try:
        aspect = float(aspect)
    except (TypeError, ValueError):
        return 1.0
    if not math.isfinite(aspect) or aspect <= 0:
        return 1.0
    return aspect


def build_letterbox_transform(content_aspect: float, viewport_aspect: float) -> LetterboxTransform:
    """Fit content of ``content_aspect`` inside a viewport of ``viewport_aspect``.

    The wider of the two is scaled down along the other axis and centered.
    Degenerate aspects are treated as 1.
    """
    content = _normalize_aspect(content_aspect)
    viewport = _normalize_aspect(viewport_aspect)

    if abs(content - viewport) < ASPECT_MATCH_EPSILON:
        return IDENTITY_LETTERBOX

    if content >= viewport:
        # Content is wider: bars above and below
        scale_y = viewport / content
        return LetterboxTransform(scale_x=1.0, scale_y=scale_y, offset_x=0.0, offset_y=(1.0 - scale_y) / 2.0)

    scale_x = content / viewport
    return LetterboxTransform(scale_x=scale_x, scale_y=1.0, offset_x=(1.0 - scale_x) / 2.0, offset_y=0.0)
