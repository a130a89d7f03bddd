"""
Per-channel calibration store for FEBEX data.

The store owns one table per parameter, indexed by the
``(sfp, board, channel)`` address of a FEBEX channel, and is filled from a
flat key/value configuration such as

.. code-block:: yaml

    febex_0_1_2.Gain: 0.45
    febex_0_1_2.Offset: -1.3
    febex_0_1_2.MWD.RiseTime: 80
    febex_0_1_2.CFD.Threshold: -150

Keys that are absent take the default of their parameter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import partialmethod
from pathlib import Path
from typing import Any, Mapping, NamedTuple

import numpy as np

from .. import utils
from ..dsp import MWDParameters, ParameterError, PulseProcessor
from .settings import SETTINGS_KEYS, FebexSettings

log = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    return int(float(value))


def _check_mapping(config: Any, source: str = None) -> None:
    if not isinstance(config, Mapping):
        where = f" in {source}" if source else ""
        raise ValueError(
            f"calibration{where} must map keys to values, got a "
            f"{type(config).__name__} (missing space after a colon?)"
        )


class _Parameter(NamedTuple):
    key: str
    default: Any
    convert: Any
    # returned by the getter for an address outside the tables
    sentinel: Any


PARAMETERS = {
    "offset": _Parameter("Offset", 0.0, float, 0.0),
    "gain": _Parameter("Gain", 0.0015, float, 0.0),
    "gain_quadr": _Parameter("GainQuadr", 0.0, float, 0.0),
    "threshold": _Parameter("Threshold", 15000, _to_int, -1),
    "type": _Parameter("Type", "Qshort", str, ""),
    "time": _Parameter("Time", 0.0, float, 0.0),
    "mwd_decay": _Parameter("MWD.DecayTime", 50000, _to_int, 0),
    "mwd_rise": _Parameter("MWD.RiseTime", 100, _to_int, 0),
    "mwd_top": _Parameter("MWD.FlatTop", 150, _to_int, 0),
    "mwd_baseline": _Parameter("MWD.Baseline", 30, _to_int, 0),
    "mwd_window": _Parameter("MWD.Window", 200, _to_int, 0),
    "cfd_delay": _Parameter("CFD.DelayTime", 16, _to_int, 0),
    "cfd_threshold": _Parameter("CFD.Threshold", 200, _to_int, 0),
    "cfd_fraction": _Parameter("CFD.Fraction", 0.25, float, 0.0),
}

# tolerance of the pass-through check on the energy coefficients
DEFAULT_COEFF_TOL = 1e-6


@dataclass(frozen=True)
class ChannelParameters:
    """All calibration and filter parameters of one channel."""

    offset: float
    gain: float
    gain_quadr: float
    threshold: int
    type: str
    time: float
    mwd: MWDParameters


class CalibratedPulse(NamedTuple):
    energy: float
    cfd_time: float
    raw_amplitude: float


class Calibration:
    """Calibration and filter parameters of every FEBEX channel.

    Every accessor takes the ``(sfp, board, ch)`` address of a channel.
    Addresses outside the configured :class:`.FebexSettings` never raise:
    getters return the sentinel of their parameter (``-1`` for the
    threshold, ``""`` for the type, ``0`` otherwise), setters do nothing,
    :meth:`energy` returns :any:`numpy.nan` and :meth:`get_channel` returns
    ``None``.

    Parameters
    ----------
    config
        flat key/value mapping, or name of a JSON/YAML file holding it. The
        channel dimensions are read from it too unless `settings` is given.
    settings
        dimensions of the channel tables.
    rng
        random generator, or seed for one, used to dither raw amplitudes in
        :meth:`energy`.
    prefix
        prefix of the channel keys, ``"<prefix>_<sfp>_<board>_<ch>.<Name>"``.
    strict
        if ``True``, raise :class:`.ParameterError` when a channel's filter
        parameters break the MWD invariants. Otherwise they are only logged.

    Note
    ----
    The tables are meant to be shared by reference and to stay read-mostly
    once loaded; nothing here is locked. The dither generator is not
    thread-safe either: concurrent callers should hand their own generator
    to :meth:`energy`.
    """

    def __init__(
        self,
        config: str | Path | Mapping = None,
        settings: FebexSettings = None,
        rng: np.random.Generator | int = None,
        prefix: str = "febex",
        strict: bool = False,
    ) -> None:
        self.prefix = prefix
        self.rng = np.random.default_rng(rng)

        if isinstance(config, (str, Path)):
            self.filename = str(config)
            config = utils.load_dict(config)
        else:
            self.filename = None
        config = {} if config is None else config
        _check_mapping(config, self.filename)

        if settings is None:
            settings = FebexSettings.from_dict(config)
        self.settings = settings
        self.read_calibration(config)

        problems = self.validate()
        if strict and problems:
            raise ParameterError(problems)

    def key(self, sfp: int, board: int, ch: int, name: str) -> str:
        """Configuration key of a parameter, e.g. ``febex_0_1_2.MWD.Window``."""
        address = f"{sfp}_{board}_{ch}"
        if self.prefix:
            address = f"{self.prefix}_{address}"
        return f"{address}.{PARAMETERS[name].key}"

    def read_calibration(self, config: str | Path | Mapping) -> None:
        """(Re)fill every table from a configuration mapping or file. The
        channel dimensions stay the ones given at construction.
        """
        source = None
        if isinstance(config, (str, Path)):
            source = str(config)
            config = utils.load_dict(config)
        _check_mapping(config, source)

        self._tables = {}
        for name, par in PARAMETERS.items():
            dtype = object if par.convert is str else type(par.convert(par.default))
            self._tables[name] = np.full(self.settings.shape, par.default, dtype=dtype)

        used = set(SETTINGS_KEYS.values())
        for sfp, board, ch in np.ndindex(*self.settings.shape):
            for name, par in PARAMETERS.items():
                key = self.key(sfp, board, ch, name)
                if key not in config:
                    continue
                used.add(key)
                value = config[key]
                try:
                    self._tables[name][sfp, board, ch] = par.convert(value)
                except (TypeError, ValueError):
                    log.error(
                        f"cannot read {key} = {value!r}, "
                        f"using default {par.default!r}"
                    )

        for key in config:
            if key not in used:
                log.warning(f"ignoring unknown calibration key {key}")

        log.debug(f"loaded calibration for {np.prod(self.settings.shape)} channels")

    def validate(self) -> list[str]:
        """Check the filter parameters of every channel. Problems are logged
        as warnings and returned.
        """
        problems = []
        for sfp, board, ch in np.ndindex(*self.settings.shape):
            for msg in self.mwd_parameters(sfp, board, ch).problems():
                problems.append(f"{self.prefix}_{sfp}_{board}_{ch}: {msg}")
        for msg in problems:
            log.warning(msg)
        return problems

    def is_valid(self, sfp: int, board: int, ch: int) -> bool:
        return self.settings.is_valid(sfp, board, ch)

    def get(self, name: str, sfp: int, board: int, ch: int) -> Any:
        """Value of parameter `name` for a channel, or the parameter's
        sentinel if the address is out of range.
        """
        if not self.is_valid(sfp, board, ch):
            log.debug(f"no channel {sfp}_{board}_{ch}, returning sentinel")
            return PARAMETERS[name].sentinel
        value = self._tables[name][sfp, board, ch]
        return value.item() if isinstance(value, np.generic) else value

    def set(self, name: str, sfp: int, board: int, ch: int, value: Any) -> None:
        """Change parameter `name` of a channel; out-of-range addresses are
        ignored.
        """
        if not self.is_valid(sfp, board, ch):
            log.warning(f"cannot set {name} of non-existent channel {sfp}_{board}_{ch}")
            return
        self._tables[name][sfp, board, ch] = PARAMETERS[name].convert(value)

    get_offset = partialmethod(get, "offset")
    get_gain = partialmethod(get, "gain")
    get_gain_quadr = partialmethod(get, "gain_quadr")
    get_threshold = partialmethod(get, "threshold")
    get_type = partialmethod(get, "type")
    get_time = partialmethod(get, "time")
    get_mwd_decay = partialmethod(get, "mwd_decay")
    get_mwd_rise = partialmethod(get, "mwd_rise")
    get_mwd_top = partialmethod(get, "mwd_top")
    get_mwd_baseline = partialmethod(get, "mwd_baseline")
    get_mwd_window = partialmethod(get, "mwd_window")
    get_cfd_delay = partialmethod(get, "cfd_delay")
    get_cfd_threshold = partialmethod(get, "cfd_threshold")
    get_cfd_fraction = partialmethod(get, "cfd_fraction")

    set_offset = partialmethod(set, "offset")
    set_gain = partialmethod(set, "gain")
    set_gain_quadr = partialmethod(set, "gain_quadr")
    set_threshold = partialmethod(set, "threshold")
    set_type = partialmethod(set, "type")
    set_time = partialmethod(set, "time")
    set_mwd_decay = partialmethod(set, "mwd_decay")
    set_mwd_rise = partialmethod(set, "mwd_rise")
    set_mwd_top = partialmethod(set, "mwd_top")
    set_mwd_baseline = partialmethod(set, "mwd_baseline")
    set_mwd_window = partialmethod(set, "mwd_window")
    set_cfd_delay = partialmethod(set, "cfd_delay")
    set_cfd_threshold = partialmethod(set, "cfd_threshold")
    set_cfd_fraction = partialmethod(set, "cfd_fraction")

    def mwd_parameters(self, sfp: int, board: int, ch: int) -> MWDParameters | None:
        """Filter configuration of a channel, ``None`` for an invalid address."""
        if not self.is_valid(sfp, board, ch):
            return None
        return MWDParameters(
            rise_time=self.get_mwd_rise(sfp, board, ch),
            decay_time=self.get_mwd_decay(sfp, board, ch),
            flat_top=self.get_mwd_top(sfp, board, ch),
            baseline_length=self.get_mwd_baseline(sfp, board, ch),
            window=self.get_mwd_window(sfp, board, ch),
            cfd_delay=self.get_cfd_delay(sfp, board, ch),
            cfd_threshold=self.get_cfd_threshold(sfp, board, ch),
            cfd_fraction=self.get_cfd_fraction(sfp, board, ch),
        )

    def get_channel(self, sfp: int, board: int, ch: int) -> ChannelParameters | None:
        """Every parameter of a channel, ``None`` for an invalid address."""
        if not self.is_valid(sfp, board, ch):
            return None
        return ChannelParameters(
            offset=self.get_offset(sfp, board, ch),
            gain=self.get_gain(sfp, board, ch),
            gain_quadr=self.get_gain_quadr(sfp, board, ch),
            threshold=self.get_threshold(sfp, board, ch),
            type=self.get_type(sfp, board, ch),
            time=self.get_time(sfp, board, ch),
            mwd=self.mwd_parameters(sfp, board, ch),
        )

    def energy(
        self,
        sfp: int,
        board: int,
        ch: int,
        raw: int | np.ndarray,
        rng: np.random.Generator = None,
    ) -> float | np.ndarray:
        r"""Calibrate raw amplitude(s) of a channel.

        Each integer amplitude is spread uniformly over its ADC bin,
        :math:`x = raw + 0.5 - u` with :math:`u \in [0, 1)`, before the
        quadratic calibration :math:`E = q x^2 + g x + o` is applied. A channel
        whose coefficients are still the identity (:math:`q = 0`,
        :math:`g = 1`, :math:`o = 0`) returns `raw` unchanged.

        Parameters
        ----------
        sfp, board, ch
            the channel address.
        raw
            one amplitude or an array of them.
        rng
            generator for the dither; defaults to the one of the store.

        Returns
        -------
        the calibrated energy, with the shape of `raw`. :any:`numpy.nan` for
        an invalid address.
        """
        if not self.is_valid(sfp, board, ch):
            log.debug(f"no channel {sfp}_{board}_{ch}, cannot calibrate")
            return np.nan if np.ndim(raw) == 0 else np.full(np.shape(raw), np.nan)

        if rng is None:
            rng = self.rng
        dither = rng.random(np.shape(raw) or None)

        quadr = self.get_gain_quadr(sfp, board, ch)
        gain = self.get_gain(sfp, board, ch)
        offset = self.get_offset(sfp, board, ch)

        if (
            abs(quadr) < DEFAULT_COEFF_TOL
            and abs(gain - 1.0) < DEFAULT_COEFF_TOL
            and abs(offset) < DEFAULT_COEFF_TOL
        ):
            return raw

        raw_rand = np.asarray(raw, dtype=np.float64) + 0.5 - dither
        energy = quadr * raw_rand * raw_rand + gain * raw_rand + offset
        return float(energy) if np.ndim(energy) == 0 else energy

    def do_mwd(
        self, sfp: int, board: int, ch: int, trace, max_pulses: int = 32
    ) -> PulseProcessor:
        """Run the pulse processor over a trace with the channel's filter
        parameters.

        For an invalid address the processor is returned without being run,
        so it holds no pulses.
        """
        params = self.mwd_parameters(sfp, board, ch)
        if params is None:
            log.debug(f"no channel {sfp}_{board}_{ch}, trace not processed")
            return PulseProcessor(trace, max_pulses=max_pulses)

        proc = PulseProcessor(trace, params, max_pulses=max_pulses)
        proc.do_mwd()
        return proc

    def process_trace(
        self, sfp: int, board: int, ch: int, trace, rng: np.random.Generator = None
    ) -> list[CalibratedPulse]:
        """Find the pulses of a trace and calibrate their energies.

        The raw amplitudes are truncated to whole ADC units before the
        dithered calibration.
        """
        proc = self.do_mwd(sfp, board, ch, trace)
        return [
            CalibratedPulse(
                self.energy(sfp, board, ch, int(np.trunc(pulse.raw_amplitude)), rng),
                pulse.cfd_time,
                pulse.raw_amplitude,
            )
            for pulse in proc.pulses
        ]

    def to_dict(self) -> dict:
        """Flat key/value mapping of the whole store, readable back by
        :meth:`read_calibration`.
        """
        out = self.settings.as_dict()
        for sfp, board, ch in np.ndindex(*self.settings.shape):
            for name in PARAMETERS:
                out[self.key(sfp, board, ch, name)] = self.get(name, sfp, board, ch)
        return out
