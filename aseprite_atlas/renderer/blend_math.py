"""
Blend Math
Fixed-point helpers over the 0-255 domain, shared by every blend mode.
All helpers accept Python ints or numpy integer arrays.
"""

import numpy as np


def mul_un8(a, b):
    """Round a*b/255 the way Aseprite's MUL_UN8 macro does."""
    t = a * b + 0x80
    return ((t >> 8) + t) >> 8


def div_un8(a, b):
    """
    Round a*255/b, saturating at 255

    Raises:
        ZeroDivisionError: when b is 0; blend modes special-case that before calling
    """
    if isinstance(b, np.ndarray):
        if np.any(b == 0):
            raise ZeroDivisionError("div_un8 denominator is zero")
        return np.minimum((a * 255 + b // 2) // b, 255)
    if b == 0:
        raise ZeroDivisionError("div_un8 denominator is zero")
    return min((a * 255 + b // 2) // b, 255)


def trunc_div(numerator, denominator):
    """Integer division rounding toward zero, as C does."""
    if isinstance(numerator, np.ndarray) or isinstance(denominator, np.ndarray):
        return np.sign(numerator) * (np.abs(numerator) // denominator)
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient
