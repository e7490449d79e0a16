from typing import Tuple

import cv2
import numpy as np

from ..exceptions import ConfigError

RECT_SIZE = (640, 1000)  # (width, height) of the rectangular preview


def make_rectangular(img: np.ndarray) -> np.ndarray:
    """Resize a (samples, lines) image to the fixed rectangular preview.

    Float images are expected in [0, 1] and scaled to uint8.
    """
    mat = np.ascontiguousarray(img.T)
    mat = cv2.resize(mat, RECT_SIZE)
    if mat.dtype != np.uint8:
        mat = np.clip(mat * 255.0, 0, 255).astype(np.uint8)
    return mat


def make_radial(img: np.ndarray, final_size: int = 0) -> np.ndarray:
    """Warp a (samples, lines) B-scan onto its circular sector geometry.

    Args:
        img (np.ndarray): Log compressed image with one column per A-line.
        final_size (int): Side of the square output. 0 keeps the natural
            radius r = min(samples, lines).

    Returns:
        np.ndarray: Square radial image with angle zero facing up.
    """
    # Polar warp expects angle along rows and radius along columns
    mat = np.ascontiguousarray(img.T)
    r = min(mat.shape[0], mat.shape[1])
    mat = cv2.resize(mat, (r * 2, r * 2))
    mat = cv2.warpPolar(mat, (r * 2, r * 2), (float(r), float(r)), float(r),
                        cv2.WARP_INVERSE_MAP | cv2.WARP_FILL_OUTLIERS)
    mat = cv2.rotate(mat, cv2.ROTATE_90_COUNTERCLOCKWISE)

    final_size = r if final_size == 0 else final_size
    return cv2.resize(mat, (final_size, final_size))


def make_overlay(us: np.ndarray, pa: np.ndarray, pa_threshold: int = 10) -> np.ndarray:
    """Composite a colourised PA radial image over a greyscale US radial image.

    PA pixels brighter than `pa_threshold` are blended in with alpha PA / 255.

    Returns:
        np.ndarray: BGR uint8 overlay of the same height and width as the inputs.

    Raises:
        ConfigError: If the two images differ in shape.
    """
    if us.shape != pa.shape:
        raise ConfigError(f"Cannot overlay images of shape {us.shape} (US) and {pa.shape} (PA)")

    us_bgr = cv2.cvtColor(us, cv2.COLOR_GRAY2BGR).astype(np.float32)
    pa_bgr = cv2.applyColorMap(pa, cv2.COLORMAP_HOT).astype(np.float32)

    alpha = np.where(pa > pa_threshold, pa.astype(np.float32) / 255.0, 0.0)[..., np.newaxis]
    out = pa_bgr * alpha + us_bgr * (1.0 - alpha)
    return np.clip(out + 0.5, 0, 255).astype(np.uint8)


def radial_depth_mm(pos: Tuple[float, float], image_size: int, pix2m: float) -> float:
    """Physical depth [mm] under pixel `pos` (x, y) of a square radial image."""
    c = image_size / 2.0
    dist = np.hypot(pos[0] - c, pos[1] - c)
    return float(dist * pix2m * 1e3)
