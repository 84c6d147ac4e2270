import dataclasses
from typing import Sequence, Tuple

import numpy as np
from scipy.signal import lfilter, lfiltic


@dataclasses.dataclass(frozen=True)
class BiquadState:
    """The two previous inputs and outputs of a second-order section."""
    x1: float = 0.0
    x2: float = 0.0
    y1: float = 0.0
    y2: float = 0.0


def _validate_coefficients(coeffs_b: Sequence[float], coeffs_a: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    b = np.asarray(coeffs_b, dtype=np.float64)
    a = np.asarray(coeffs_a, dtype=np.float64)

    if b.shape != (3,) or a.shape != (3,):
        raise ValueError(f"Biquad needs exactly three B and three A coefficients, got {b.shape} and {a.shape}.")
    if a[0] != 1.0:
        raise ValueError(f"Biquad A coefficients must be normalized (a0 == 1), got a0={a[0]}.")

    return b, a


class BiquadFilter:
    """
    Second-order IIR section over pre-normalized coefficients:

        y[n] = b0*x[n] + b1*x[n-1] + b2*x[n-2] - a1*y[n-1] - a2*y[n-2]
    """
    def __init__(self, coeffs_b: Sequence[float], coeffs_a: Sequence[float]):
        self._b, self._a = _validate_coefficients(coeffs_b, coeffs_a)

    def apply(self, samples: np.ndarray) -> np.ndarray:
        """Filters one contiguous window starting from zero state. Nothing is retained between calls."""
        x = np.asarray(samples, dtype=np.float64)
        if x.size == 0:
            return x.copy()
        return lfilter(self._b, self._a, x)

    def process(self, samples: np.ndarray, state: BiquadState) -> Tuple[np.ndarray, BiquadState]:
        """Filters a window continuing from `state` and returns the output with the state after the last sample."""
        x = np.asarray(samples, dtype=np.float64)
        if x.size == 0:
            return x.copy(), state

        zi = lfiltic(self._b, self._a, y=[state.y1, state.y2], x=[state.x1, state.x2])
        y, _ = lfilter(self._b, self._a, x, zi=zi)

        xs = np.concatenate(([state.x2, state.x1], x))
        ys = np.concatenate(([state.y2, state.y1], y))
        return y, BiquadState(x1=float(xs[-1]), x2=float(xs[-2]), y1=float(ys[-1]), y2=float(ys[-2]))


def apply_biquad(samples: np.ndarray, coeffs_b: Sequence[float], coeffs_a: Sequence[float]) -> np.ndarray:
    return BiquadFilter(coeffs_b, coeffs_a).apply(samples)
