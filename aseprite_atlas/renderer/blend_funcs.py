"""
Blend Functions
Aseprite's RGBA blenders, vectorized over numpy arrays of shape (..., 4).

Every non-normal mode computes a blended color from backdrop and source,
keeps the source alpha, and composites the result with the normal blender.
Arrays are int32 holding 0-255 values; the opacity is a scalar 0-255.
"""

from typing import Callable, Dict, Tuple

import numpy as np

from ..core.data_structures import BlendMode
from .blend_math import div_un8, mul_un8, trunc_div


def _safe(denominator, used):
    return np.where(used, denominator, 1)


# ---------------------------------------------------------------------- #
# Per-channel functions, b = backdrop channel, s = source channel
# ---------------------------------------------------------------------- #
def blend_multiply(b, s):
    return mul_un8(b, s)


def blend_screen(b, s):
    return b + s - mul_un8(b, s)


def blend_hard_light(b, s):
    return np.where(s < 128, blend_multiply(b, s << 1), blend_screen(b, (s << 1) - 255))


def blend_overlay(b, s):
    return blend_hard_light(s, b)


def blend_darken(b, s):
    return np.minimum(b, s)


def blend_lighten(b, s):
    return np.maximum(b, s)


def blend_difference(b, s):
    return np.abs(b - s)


def blend_exclusion(b, s):
    return b + s - 2 * mul_un8(b, s)


def blend_color_dodge(b, s):
    s = 255 - s
    divide = (b != 0) & (b < s)
    result = np.where(b >= s, 255, 0)
    result = np.where(b == 0, 0, result)
    return np.where(divide, div_un8(b, _safe(s, divide)), result)


def blend_color_burn(b, s):
    inverted = 255 - b
    divide = (b != 255) & (inverted < s)
    result = np.where(b == 255, 255, 0)
    return np.where(divide, 255 - div_un8(inverted, _safe(s, divide)), result)


def blend_soft_light(b, s):
    b = b / 255.0
    s = s / 255.0
    d = np.where(b <= 0.25, ((16 * b - 12) * b + 4) * b, np.sqrt(b))
    r = np.where(s <= 0.5, b - (1.0 - 2.0 * s) * b * (1.0 - b), b + (2.0 * s - 1.0) * (d - b))
    return (r * 255 + 0.5).astype(np.int32)


def blend_addition(b, s):
    return np.minimum(b + s, 255)


def blend_subtract(b, s):
    return np.maximum(b - s, 0)


def blend_divide(b, s):
    divide = (b != 0) & (b < s)
    result = np.where(b == 0, 0, 255)
    return np.where(divide, div_un8(b, _safe(s, divide)), result)


# ---------------------------------------------------------------------- #
# HSL helpers over float64 arrays of shape (..., 3)
# ---------------------------------------------------------------------- #
def _lum(c):
    return 0.3 * c[..., 0] + 0.59 * c[..., 1] + 0.11 * c[..., 2]


def _sat(c):
    return c.max(axis=-1) - c.min(axis=-1)


def _clip_color(c):
    l = _lum(c)[..., None]
    n = c.min(axis=-1)[..., None]
    x = c.max(axis=-1)[..., None]
    with np.errstate(divide='ignore', invalid='ignore'):
        c = np.where(n < 0, l + ((c - l) * l) / (l - n), c)
        c = np.where(x > 1, l + ((c - l) * (1 - l)) / (x - l), c)
    return c


def _set_lum(c, l):
    d = l - _lum(c)
    return _clip_color(c + d[..., None])


def _set_sat(c, s):
    """
    Channel selection follows C's MIN/MID/MAX macros, so on ties the min, mid
    and max references can alias the same channel and later writes win.
    """
    r, g, b = c[..., 0], c[..., 1], c[..., 2]
    zeros = np.zeros(r.shape, dtype=np.intp)

    min_gb = np.where(g < b, 1, 2)
    v_min_gb = np.where(g < b, g, b)
    i_min = np.where(r < v_min_gb, zeros, min_gb)

    max_gb = np.where(g > b, 1, 2)
    v_max_gb = np.where(g > b, g, b)
    i_max = np.where(r > v_max_gb, zeros, max_gb)

    i_mid = np.where(
        r > g,
        np.where(g > b, 1, np.where(r > b, 2, 0)),
        np.where(g > b, np.where(b > r, 2, 0), 1),
    )

    def pick(index):
        return np.take_along_axis(c, index[..., None], axis=-1)[..., 0]

    v_min, v_mid, v_max = pick(i_min), pick(i_mid), pick(i_max)
    spread = v_max > v_min
    with np.errstate(divide='ignore', invalid='ignore'):
        new_mid = np.where(spread, ((v_mid - v_min) * s) / (v_max - v_min), 0.0)
    new_max = np.where(spread, s, 0.0)

    c = c.copy()
    np.put_along_axis(c, i_mid[..., None], new_mid[..., None], axis=-1)
    np.put_along_axis(c, i_max[..., None], new_max[..., None], axis=-1)
    np.put_along_axis(c, i_min[..., None], np.zeros_like(new_mid)[..., None], axis=-1)
    return c


def _unit(rgb):
    return rgb / 255.0


def _to_channels(c):
    return np.clip(np.trunc(255.0 * c), 0, 255).astype(np.int32)


def hsl_hue(backdrop_rgb, source_rgb):
    bd = _unit(backdrop_rgb)
    c = _set_sat(_unit(source_rgb), _sat(bd))
    return _to_channels(_set_lum(c, _lum(bd)))


def hsl_saturation(backdrop_rgb, source_rgb):
    bd = _unit(backdrop_rgb)
    c = _set_sat(bd, _sat(_unit(source_rgb)))
    return _to_channels(_set_lum(c, _lum(bd)))


def hsl_color(backdrop_rgb, source_rgb):
    return _to_channels(_set_lum(_unit(source_rgb), _lum(_unit(backdrop_rgb))))


def hsl_luminosity(backdrop_rgb, source_rgb):
    return _to_channels(_set_lum(_unit(backdrop_rgb), _lum(_unit(source_rgb))))


# ---------------------------------------------------------------------- #
# RGBA blenders
# ---------------------------------------------------------------------- #
def blend_normal(backdrop, source, opacity: int):
    """Porter-Duff "over" with Aseprite's fixed-point rounding."""
    backdrop = np.asarray(backdrop, dtype=np.int32)
    source = np.asarray(source, dtype=np.int32)
    ba = backdrop[..., 3:4]
    sa = mul_un8(source[..., 3:4], opacity)

    ra = sa + ba - mul_un8(ba, sa)
    rc = backdrop[..., :3] + trunc_div((source[..., :3] - backdrop[..., :3]) * sa, np.where(ra == 0, 1, ra))
    blended = np.concatenate([rc, ra], axis=-1)

    onto_empty = np.concatenate([source[..., :3], sa], axis=-1)
    result = np.where(source[..., 3:4] == 0, backdrop, blended)
    return np.where(ba == 0, onto_empty, result)


_CHANNEL_BLENDERS: Dict[BlendMode, Callable] = {
    BlendMode.MULTIPLY: blend_multiply,
    BlendMode.SCREEN: blend_screen,
    BlendMode.OVERLAY: blend_overlay,
    BlendMode.DARKEN: blend_darken,
    BlendMode.LIGHTEN: blend_lighten,
    BlendMode.COLOR_DODGE: blend_color_dodge,
    BlendMode.COLOR_BURN: blend_color_burn,
    BlendMode.HARD_LIGHT: blend_hard_light,
    BlendMode.SOFT_LIGHT: blend_soft_light,
    BlendMode.DIFFERENCE: blend_difference,
    BlendMode.EXCLUSION: blend_exclusion,
    BlendMode.ADDITION: blend_addition,
    BlendMode.SUBTRACT: blend_subtract,
    BlendMode.DIVIDE: blend_divide,
}

_HSL_BLENDERS: Dict[BlendMode, Callable] = {
    BlendMode.HUE: hsl_hue,
    BlendMode.SATURATION: hsl_saturation,
    BlendMode.COLOR: hsl_color,
    BlendMode.LUMINOSITY: hsl_luminosity,
}


def blend(mode: BlendMode, backdrop, source, opacity: int) -> np.ndarray:
    """
    Composite source over backdrop

    Args:
        mode: Layer blend mode
        backdrop: int array (..., 4), RGBA 0-255
        source: int array (..., 4) with the same shape
        opacity: Combined cel and layer opacity, 0-255

    Returns:
        int32 array (..., 4)
    """
    backdrop = np.asarray(backdrop, dtype=np.int32)
    source = np.asarray(source, dtype=np.int32)
    mode = BlendMode(mode)
    if mode == BlendMode.NORMAL:
        return blend_normal(backdrop, source, opacity)

    if mode in _HSL_BLENDERS:
        rgb = _HSL_BLENDERS[mode](backdrop[..., :3], source[..., :3])
    else:
        rgb = _CHANNEL_BLENDERS[mode](backdrop[..., :3], source[..., :3])
    blended_source = np.concatenate([np.asarray(rgb, dtype=np.int32), source[..., 3:4]], axis=-1)
    # Nothing to blend against where the backdrop is empty
    blended_source = np.where(backdrop[..., 3:4] == 0, source, blended_source)
    return blend_normal(backdrop, blended_source, opacity)


def blend_pixel(mode: BlendMode, backdrop: Tuple[int, int, int, int],
                source: Tuple[int, int, int, int], opacity: int) -> Tuple[int, int, int, int]:
    """Blend a single RGBA pixel; convenience wrapper around blend()."""
    result = blend(mode, np.array(backdrop, dtype=np.int32), np.array(source, dtype=np.int32), opacity)
    return tuple(int(v) for v in result)
