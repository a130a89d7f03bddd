from __future__ import annotations

import numpy as np
from numba import guvectorize

from febexdsp.dsp.utils import numba_defaults_kwargs as nb_kwargs

from .mwd import SKIP_SAMPLES


@guvectorize(
    [
        "void(float32[:], int32, float32, float32[:], float32[:])",
        "void(float64[:], int32, float64, float64[:], float64[:])",
    ],
    "(n),(),()->(n),(n)",
    **nb_kwargs,
)
def cfd_filter(
    w_in: np.ndarray,
    delay: int,
    fraction: float,
    w_shaper: np.ndarray,
    w_cfd: np.ndarray,
) -> None:
    """Build the constant-fraction discriminator trace.

    The raw trace is first shaped with a delay line,
    ``w_shaper[i] = w_in[i] - w_in[i-delay]``, then the delayed shaped signal
    is subtracted from an attenuated copy,
    ``w_cfd[i] = fraction * w_shaper[i] - w_shaper[i-delay]``. Both outputs
    are zero up to and including sample ``delay + SKIP_SAMPLES``.

    Parameters
    ----------
    w_in
        the input trace.
    delay
        the delay-line length, in samples.
    fraction
        the attenuation applied to the prompt shaped signal.
    w_shaper
        the delay-line shaped waveform.
    w_cfd
        the discriminator waveform; its zero crossings mark pulse times.
    """
    w_shaper[:] = np.nan
    w_cfd[:] = np.nan

    if np.isnan(w_in).any() or np.isnan(fraction):
        return

    if delay < 0:
        return

    w_shaper[:] = 0
    w_cfd[:] = 0

    for i in range(SKIP_SAMPLES + delay + 1, len(w_in)):
        w_shaper[i] = w_in[i] - w_in[i - delay]
        w_cfd[i] = fraction * w_shaper[i] - w_shaper[i - delay]
