"""Coordinate spaces and conversions."""

from .types import (
    SpacePoint,
    CameraPixels,
    Isotropic,
    Viewport,
    Centered,
    Pattern,
    CameraInfo,
)
from .letterbox import LetterboxTransform, IDENTITY_LETTERBOX, build_letterbox_transform
from .transform import CoordinateTransformer, centered_to_view, view_to_centered
from .rotation import (
    AxisMapping,
    axis_mapping,
    rotate_vector,
    inverse_rotate_vector,
    rotate_grid_position,
    step_test_jog_direction,
    pattern_to_centered,
    centered_to_pattern,
    validate_rotation,
)

__all__ = [
    # Coordinate types
    "SpacePoint",
    "CameraPixels",
    "Isotropic",
    "Viewport",
    "Centered",
    "Pattern",
    "CameraInfo",
    # Transforms
    "CoordinateTransformer",
    "LetterboxTransform",
    "IDENTITY_LETTERBOX",
    "build_letterbox_transform",
    "centered_to_view",
    "view_to_centered",
    # Array rotation
    "AxisMapping",
    "axis_mapping",
    "rotate_vector",
    "inverse_rotate_vector",
    "rotate_grid_position",
    "step_test_jog_direction",
    "pattern_to_centered",
    "centered_to_pattern",
    "validate_rotation",
]
