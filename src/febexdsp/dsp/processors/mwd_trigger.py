from __future__ import annotations

import numpy as np
from numba import guvectorize

from febexdsp.dsp.utils import numba_defaults_kwargs as nb_kwargs

from .mwd import SKIP_SAMPLES


@guvectorize(
    [
        "void(float32[:], float32[:], float32, int32, int32, int32, int32, float32[:], float32[:], float32[:])",
        "void(float64[:], float64[:], float64, int32, int32, int32, int32, float64[:], float64[:], float64[:])",
    ],
    "(n),(n),(),(),(),(),(),(m),(m),()",
    **nb_kwargs,
)
def mwd_trigger(
    w_cfd: np.ndarray,
    w_mwd: np.ndarray,
    a_threshold: float,
    rise: int,
    delay: int,
    window: int,
    baseline: int,
    vt_out: np.ndarray,
    va_out: np.ndarray,
    n_out: int,
) -> None:
    """Scan a CFD trace for pulses and read their amplitudes off the
    averaged MWD trace.

    Walking forward from sample :data:`.SKIP_SAMPLES`, a trigger fires when
    `w_cfd` passes `a_threshold` (upwards for a positive threshold,
    downwards for a negative one). The scan then walks to the zero crossing
    of the CFD lobe. A crossing is accepted only if the last sample before
    it carries the sign of the threshold. A lobe that ends on an exact zero
    is a crossing at that sample, unless the CFD then rests at zero for more
    than `delay` samples, which marks the trailing lobe of a pulse of the
    opposite polarity. Otherwise the crossing time is interpolated between
    the two samples, each weighted by the inverse of its distance from
    zero. The amplitude is read ``rise + delay`` samples after the crossing
    and the baseline, the MWD value `baseline` samples before the trigger,
    is subtracted. The scan resumes ``window + baseline`` samples after the
    read-out, so pulses closer than that are not resolved.

    The scan stops as soon as fewer than `rise` samples follow a crossing or
    the read-out index falls outside the trace.

    Parameters
    ----------
    w_cfd
        the discriminator trace, see :func:`.cfd_filter`.
    w_mwd
        the averaged MWD trace, see :func:`.mwd_stages`.
    a_threshold
        the signed trigger threshold; its sign selects the pulse polarity.
        A zero threshold never triggers.
    rise
        the MWD difference gap, in samples.
    delay
        the CFD delay, in samples.
    window
        the MWD averaging window, in samples.
    baseline
        how many samples the baseline estimate trails the trigger.
    vt_out
        array of fixed length (padded with :any:`numpy.nan`) that holds the
        interpolated crossing times of the pulses.
    va_out
        array of fixed length (padded with :any:`numpy.nan`) that holds the
        baseline-subtracted amplitudes of the pulses.
    n_out
        the number of pulses found in the trace. May exceed the length of
        `vt_out`, in which case only the first pulses are stored.
    """
    vt_out[:] = np.nan
    va_out[:] = np.nan
    n_out[0] = np.nan

    if np.isnan(w_cfd).any() or np.isnan(w_mwd).any() or np.isnan(a_threshold):
        return

    if rise <= 0 or window <= 0 or delay < 0 or baseline < 0:
        return

    n_samples = len(w_cfd)
    n_found = 0

    i = SKIP_SAMPLES
    while i < n_samples:
        if i >= baseline:
            a_baseline = w_mwd[i - baseline]
        else:
            a_baseline = w_mwd[0]

        triggered = (a_threshold > 0 and w_cfd[i] > a_threshold) or (
            a_threshold < 0 and w_cfd[i] < a_threshold
        )
        if i < delay or not triggered:
            i += 1
            continue

        # walk to the zero crossing
        while i < n_samples and w_cfd[i] * w_cfd[i - 1] > 0:
            i += 1
        if i >= n_samples:
            break

        # reject incorrect polarity, or a trigger sample that starts its lobe
        if (a_threshold > 0 and not w_cfd[i - 1] > 0) or (
            a_threshold < 0 and not w_cfd[i - 1] < 0
        ):
            i += 1
            continue

        # a lobe that comes back to zero and rests there is the tail of a
        # pulse of the opposite polarity
        if w_cfd[i] == 0:
            j = i
            while j < n_samples and j - i <= delay and w_cfd[j] == 0:
                j += 1
            if j >= n_samples or j - i > delay:
                i = j
                continue

        if n_samples - i < rise:
            break

        if w_cfd[i] == 0:
            t_cross = float(i)
        else:
            w_after = 1.0 / abs(w_cfd[i])
            w_before = 1.0 / abs(w_cfd[i - 1])
            t_cross = (i * w_after + (i - 1) * w_before) / (w_after + w_before)

        # flat top is not applied
        i_readout = i + rise + delay
        if i_readout >= n_samples:
            break

        if n_found < len(vt_out):
            vt_out[n_found] = t_cross
            va_out[n_found] = w_mwd[i_readout] - a_baseline
        n_found += 1

        i = i_readout + window + baseline + 1

    n_out[0] = n_found
