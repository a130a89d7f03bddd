"""
This module implements the per-trace pulse processor: a moving-window
deconvolution for the amplitude and a constant-fraction discriminator for the
timing, run over one FEBEX trace with one channel's parameter set.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import NamedTuple

import numpy as np

from .processors import SKIP_SAMPLES, cfd_filter, mwd_stages, mwd_trigger

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MWDParameters:
    """Filter configuration of one channel. All lengths are in samples.

    Attributes
    ----------
    rise_time
        gap of the difference stage (`M`).
    decay_time
        preamplifier decay constant undone by the deconvolution (`tau`).
    flat_top
        intended flat-top width. Stored but not used by the trigger scan.
    baseline_length
        how far the baseline estimate trails the trigger.
    window
        energy-averaging window (`L`).
    cfd_delay
        delay-line length of the discriminator.
    cfd_threshold
        signed trigger threshold; positive for positive-going pulses,
        negative for negative-going ones.
    cfd_fraction
        attenuation of the prompt signal in the discriminator.
    """

    rise_time: int = 100
    decay_time: float = 50000
    flat_top: int = 150
    baseline_length: int = 30
    window: int = 200
    cfd_delay: int = 16
    cfd_threshold: float = 200
    cfd_fraction: float = 0.25

    def problems(self) -> list[str]:
        """Return a description of every broken filter invariant."""
        msgs = []
        for name in ("rise_time", "decay_time", "window"):
            if not getattr(self, name) > 0:
                msgs.append(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("flat_top", "baseline_length", "cfd_delay"):
            if getattr(self, name) < 0:
                msgs.append(f"{name} must not be negative, got {getattr(self, name)}")
        if self.cfd_delay >= self.rise_time:
            msgs.append(
                f"cfd_delay ({self.cfd_delay}) should be shorter than "
                f"rise_time ({self.rise_time})"
            )
        if self.cfd_threshold == 0:
            msgs.append("cfd_threshold is zero, the channel will never trigger")
        return msgs

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class PulseRecord(NamedTuple):
    """One pulse found in a trace."""

    cfd_time: float
    raw_amplitude: float


class PulseProcessor:
    """Run the moving-window deconvolution and the constant-fraction trigger
    over a single trace.

    A processor is meant to be built for one trace, run once with
    :meth:`do_mwd` and thrown away. The intermediate waveforms stay available
    afterwards for diagnostics.

    Parameters
    ----------
    trace
        the digitized samples, in ADC units.
    params
        the filter configuration. Defaults to :class:`MWDParameters()`.
    max_pulses
        capacity of the pulse buffer. Pulses beyond it are counted but
        dropped.

    Examples
    --------
    >>> proc = PulseProcessor(trace, MWDParameters(rise_time=80, window=80))
    >>> for pulse in proc.do_mwd():
    ...     print(pulse.cfd_time, pulse.raw_amplitude)
    """

    def __init__(
        self,
        trace: np.ndarray = None,
        params: MWDParameters = None,
        max_pulses: int = 32,
    ) -> None:
        self.params = params if params is not None else MWDParameters()
        self.max_pulses = int(max_pulses)
        self.set_trace(trace if trace is not None else [])

    def set_trace(self, trace) -> None:
        """Replace the trace and forget the results of any previous run."""
        self.trace = np.array(trace, dtype=np.float64).ravel()
        n = len(self.trace)
        self.stage1 = np.zeros(n)
        self.stage2 = np.zeros(n)
        self.stage3 = np.zeros(n)
        self.stage4 = np.zeros(n)
        self.shaper = np.zeros(n)
        self.cfd = np.zeros(n)
        self.pulses: list[PulseRecord] = []

    def configure(self, **changes) -> MWDParameters:
        """Change some of the filter parameters, e.g.
        ``proc.configure(rise_time=50, cfd_threshold=-150)``.
        """
        self.params = replace(self.params, **changes)
        return self.params

    def do_mwd(self) -> list[PulseRecord]:
        """Filter the trace and return the pulses found in it.

        A trace too short to analyse, a trace with :any:`numpy.nan` samples
        or a parameter set breaking the filter invariants all give an empty
        list.
        """
        self.set_trace(self.trace)
        if len(self.trace) <= SKIP_SAMPLES + 1:
            log.debug(f"trace of {len(self.trace)} samples is too short")
            return self.pulses

        p = self.params
        mwd_stages(
            self.trace,
            int(p.rise_time),
            float(p.decay_time),
            int(p.window),
            self.stage1,
            self.stage2,
            self.stage3,
            self.stage4,
        )
        cfd_filter(
            self.trace, int(p.cfd_delay), float(p.cfd_fraction), self.shaper, self.cfd
        )

        vt_out = np.full(self.max_pulses, np.nan)
        va_out = np.full(self.max_pulses, np.nan)
        n_out = np.zeros(1)
        mwd_trigger(
            self.cfd,
            self.stage4,
            float(p.cfd_threshold),
            int(p.rise_time),
            int(p.cfd_delay),
            int(p.window),
            int(p.baseline_length),
            vt_out,
            va_out,
            n_out,
        )

        if np.isnan(n_out[0]):
            log.debug(f"no pulse search done with {p}")
            return self.pulses

        n_found = int(n_out[0])
        if n_found > self.max_pulses:
            log.debug(
                f"found {n_found} pulses, keeping the first {self.max_pulses}"
            )
            n_found = self.max_pulses

        self.pulses = [
            PulseRecord(float(t), float(a))
            for t, a in zip(vt_out[:n_found], va_out[:n_found])
        ]
        return self.pulses

    @property
    def n_pulses(self) -> int:
        return len(self.pulses)

    @property
    def cfd_times(self) -> np.ndarray:
        return np.array([pulse.cfd_time for pulse in self.pulses])

    @property
    def energies(self) -> np.ndarray:
        """Baseline-subtracted raw amplitudes, one per pulse."""
        return np.array([pulse.raw_amplitude for pulse in self.pulses])
