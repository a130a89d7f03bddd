from __future__ import annotations

import numpy as np
from numba import guvectorize

from febexdsp.dsp.utils import numba_defaults_kwargs as nb_kwargs

# leading samples left untouched by every filter stage
SKIP_SAMPLES = 5


@guvectorize(
    [
        "void(float32[:], int32, float32, int32, float32[:], float32[:], float32[:], float32[:])",
        "void(float64[:], int32, float64, int32, float64[:], float64[:], float64[:], float64[:])",
    ],
    "(n),(),(),()->(n),(n),(n),(n)",
    **nb_kwargs,
)
def mwd_stages(
    w_in: np.ndarray,
    rise: int,
    decay: float,
    window: int,
    w_diff: np.ndarray,
    w_avg: np.ndarray,
    w_mwd: np.ndarray,
    w_out: np.ndarray,
) -> None:
    """Apply the four stages of the moving-window deconvolution (MWD) to a
    preamplifier trace.

    The difference stage ``w_diff[i] = w_in[i] - w_in[i-rise]`` and the
    decay stage ``w_avg[i] = sum(w_in[i-rise+1:i+1]) / decay`` are combined
    into the deconvolved amplitude ``w_mwd``, which is finally smoothed by a
    moving average of length `window` into ``w_out``. The first
    :data:`SKIP_SAMPLES` samples are never used as a lookback origin and
    every stage is zero wherever it is undefined.

    Parameters
    ----------
    w_in
        the input trace.
    rise
        the number of samples in the difference gap (`M`).
    decay
        the decay constant of the preamplifier, in samples (`tau`).
    window
        the number of samples in the energy-averaging window (`L`).
    w_diff
        stage 1, the difference waveform.
    w_avg
        stage 2, the decay-correction waveform.
    w_mwd
        stage 3, the deconvolved waveform.
    w_out
        stage 4, the averaged deconvolved waveform used for the amplitude
        read-out.

    Note
    ----
    Non-positive `rise`, `decay` or `window` leave all stages at
    :any:`numpy.nan`; no exception is raised.
    """
    w_diff[:] = np.nan
    w_avg[:] = np.nan
    w_mwd[:] = np.nan
    w_out[:] = np.nan

    if np.isnan(w_in).any() or np.isnan(decay):
        return

    if rise <= 0 or window <= 0 or decay <= 0:
        return

    w_diff[:] = 0
    w_avg[:] = 0
    w_mwd[:] = 0
    w_out[:] = 0

    for i in range(SKIP_SAMPLES + rise, len(w_in)):
        w_diff[i] = w_in[i] - w_in[i - rise]

        total = 0.0
        for j in range(rise):
            total += w_in[i - j]
        w_avg[i] = total / decay

        w_mwd[i] = w_diff[i] + w_avg[i]

    for i in range(SKIP_SAMPLES + window, len(w_in)):
        total = 0.0
        for j in range(window):
            total += w_mwd[i - j]
        w_out[i] = total / window
