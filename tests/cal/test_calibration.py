import json
import logging

import numpy as np
import pytest

from febexdsp.cal import Calibration, ChannelParameters, FebexSettings
from febexdsp.cal.calibration import PARAMETERS
from febexdsp.dsp import MWDParameters, ParameterError

bad_addresses = [(2, 0, 0), (0, 2, 0), (0, 0, 4), (-1, 0, 0), (0, -1, 3)]


@pytest.fixture
def cal(cal_config_file):
    return Calibration(cal_config_file, rng=1234)


def test_defaults():
    cal = Calibration(settings=FebexSettings(1, 1, 2))
    assert cal.get_offset(0, 0, 0) == 0
    assert cal.get_gain(0, 0, 0) == 0.0015
    assert cal.get_gain_quadr(0, 0, 0) == 0
    assert cal.get_threshold(0, 0, 0) == 15000
    assert cal.get_type(0, 0, 0) == "Qshort"
    assert cal.get_time(0, 0, 0) == 0
    assert cal.get_mwd_decay(0, 0, 1) == 50000
    assert cal.get_mwd_rise(0, 0, 1) == 100
    assert cal.get_mwd_top(0, 0, 1) == 150
    assert cal.get_mwd_baseline(0, 0, 1) == 30
    assert cal.get_mwd_window(0, 0, 1) == 200
    assert cal.get_cfd_delay(0, 0, 1) == 16
    assert cal.get_cfd_threshold(0, 0, 1) == 200
    assert cal.get_cfd_fraction(0, 0, 1) == 0.25
    assert cal.mwd_parameters(0, 0, 1) == MWDParameters()
    assert cal.validate() == []


def test_read_file(cal):
    assert cal.settings.shape == (2, 2, 4)
    assert cal.filename.endswith("febex-cal.yaml")

    assert cal.get_offset(0, 1, 2) == -1.5
    assert cal.get_gain(0, 1, 2) == 0.45
    assert cal.get_gain_quadr(0, 1, 2) == 1.2e-7
    assert cal.get_threshold(0, 1, 2) == 12000
    assert cal.get_type(0, 1, 2) == "Qlong"
    assert cal.get_time(0, 1, 2) == 150.5

    assert cal.mwd_parameters(1, 0, 3) == MWDParameters(
        rise_time=80,
        decay_time=4500,
        flat_top=40,
        baseline_length=20,
        window=60,
        cfd_delay=8,
        cfd_threshold=-150,
        cfd_fraction=0.3,
    )

    # untouched channels keep the defaults
    assert cal.get_type(1, 1, 1) == "Qshort"
    assert isinstance(cal.get_threshold(1, 1, 1), int)
    assert isinstance(cal.get_gain(1, 1, 1), float)


def test_read_json(tmp_dir):
    fname = f"{tmp_dir}/febex-cal.json"
    with open(fname, "w") as f:
        json.dump({"NumberOfFebexSfps": 1, "febex_0_3_7.Gain": 0.7}, f)

    cal = Calibration(fname)
    assert cal.settings.shape == (1, 16, 16)
    assert cal.get_gain(0, 3, 7) == 0.7


def test_read_not_a_mapping(tmp_dir):
    # without a space after the colons the file parses as one string
    fname = f"{tmp_dir}/no-space.cal"
    with open(fname, "w") as f:
        f.write("febex_0_0_0.Gain:0.5\nfebex_0_0_0.Offset:1\n")

    with pytest.raises(ValueError, match="no-space.cal"):
        Calibration(fname)

    cal = Calibration(settings=FebexSettings(1, 1, 1))
    with pytest.raises(ValueError):
        cal.read_calibration(fname)
    with pytest.raises(ValueError):
        Calibration(["febex_0_0_0.Gain", 0.5])


def test_prefix():
    cal = Calibration({"0_0_1.Gain": 2.5}, settings=FebexSettings(1, 1, 2), prefix="")
    assert cal.get_gain(0, 0, 1) == 2.5
    assert cal.key(0, 0, 1, "mwd_window") == "0_0_1.MWD.Window"


def test_unknown_and_bad_keys(caplog):
    config = {"febex_5_0_0.Gain": 2, "foo": 1, "febex_0_0_0.Gain": "abc"}
    with caplog.at_level(logging.WARNING):
        cal = Calibration(config, settings=FebexSettings(1, 1, 1))

    assert "febex_5_0_0.Gain" in caplog.text
    assert "foo" in caplog.text
    assert "febex_0_0_0.Gain" in caplog.text
    assert cal.get_gain(0, 0, 0) == 0.0015


@pytest.mark.parametrize("address", bad_addresses)
def test_out_of_range_getters(cal, address):
    for name, par in PARAMETERS.items():
        assert getattr(cal, f"get_{name}")(*address) == par.sentinel

    assert cal.get_threshold(*address) == -1
    assert cal.get_type(*address) == ""
    assert cal.get_time(*address) == 0
    assert cal.get_channel(*address) is None
    assert cal.mwd_parameters(*address) is None
    assert np.isnan(cal.energy(*address, 100))
    assert np.all(np.isnan(cal.energy(*address, np.arange(4))))
    assert cal.energy(*address, np.arange(4)).shape == (4,)


@pytest.mark.parametrize("address", bad_addresses)
def test_out_of_range_setters(cal, address):
    before = cal.to_dict()
    for name in PARAMETERS:
        getattr(cal, f"set_{name}")(*address, 1)
    assert cal.to_dict() == before


def test_setters(cal):
    cal.set_gain(1, 1, 1, 2.0)
    cal.set_type(1, 1, 1, "Time")
    cal.set_mwd_rise(1, 1, 1, "120")
    cal.set_cfd_threshold(1, 1, 1, -75.0)
    cal.set_cfd_fraction(1, 1, 1, 0.5)

    assert cal.get_gain(1, 1, 1) == 2.0
    assert cal.get_type(1, 1, 1) == "Time"
    assert cal.get_mwd_rise(1, 1, 1) == 120
    assert cal.get_cfd_threshold(1, 1, 1) == -75
    assert cal.get_cfd_fraction(1, 1, 1) == 0.5

    # neighbours untouched
    assert cal.get_gain(1, 1, 0) == 0.0015


def test_get_channel(cal):
    channel = cal.get_channel(0, 1, 2)
    assert isinstance(channel, ChannelParameters)
    assert channel.gain == 0.45
    assert channel.type == "Qlong"
    assert channel.mwd == MWDParameters()


def test_energy_identity(cal):
    # channel 0_0_0 has the identity calibration
    assert cal.energy(0, 0, 0, 1234) == 1234
    raw = np.arange(10)
    assert np.array_equal(cal.energy(0, 0, 0, raw), raw)


def test_energy_dither_bounds(cal):
    gain, offset, r = 2.0, 3.0, 500
    cal.set_gain(0, 0, 1, gain)
    cal.set_offset(0, 0, 1, offset)

    energies = cal.energy(0, 0, 1, np.full(10000, r))
    assert energies.min() > gain * (r - 0.5) + offset
    assert energies.max() <= gain * (r + 0.5) + offset
    assert energies.std() > 0

    energy = cal.energy(0, 0, 1, r)
    assert isinstance(energy, float)
    assert gain * (r - 0.5) + offset < energy <= gain * (r + 0.5) + offset


def test_energy_quadratic(cal):
    def poly(x):
        return 1.2e-7 * x**2 + 0.45 * x - 1.5

    energies = cal.energy(0, 1, 2, np.full(1000, 10000))
    assert energies.min() > poly(9999.5)
    assert energies.max() <= poly(10000.5)


def test_energy_injected_rng(cal_config_file):
    cal = Calibration(cal_config_file)
    u = np.random.default_rng(7).random()
    energy = cal.energy(0, 1, 2, 100, rng=np.random.default_rng(7))
    x = 100 + 0.5 - u
    assert energy == pytest.approx(1.2e-7 * x * x + 0.45 * x - 1.5)

    # seeded stores are reproducible
    a = Calibration(cal_config_file, rng=42)
    b = Calibration(cal_config_file, rng=42)
    raw = np.arange(100, 200)
    assert np.array_equal(a.energy(0, 1, 2, raw), b.energy(0, 1, 2, raw))


def _configure_step_channel(cal, sfp, board, ch):
    cal.set_mwd_decay(sfp, board, ch, 10**9)
    cal.set_mwd_rise(sfp, board, ch, 100)
    cal.set_mwd_window(sfp, board, ch, 100)
    cal.set_mwd_baseline(sfp, board, ch, 30)
    cal.set_cfd_delay(sfp, board, ch, 4)
    cal.set_cfd_threshold(sfp, board, ch, 100)
    cal.set_cfd_fraction(sfp, board, ch, 0.25)


def test_do_mwd(cal, step_trace):
    _configure_step_channel(cal, 1, 1, 1)
    trace = step_trace(600, [(200, 1000)])

    proc = cal.do_mwd(1, 1, 1, trace)
    assert len(proc.pulses) == 1
    assert proc.pulses[0].raw_amplitude == pytest.approx(910, abs=1e-2)
    assert proc.params == cal.mwd_parameters(1, 1, 1)

    proc = cal.do_mwd(5, 1, 1, trace)
    assert proc.pulses == []


def test_process_trace(cal, step_trace):
    _configure_step_channel(cal, 1, 1, 1)
    cal.set_gain(1, 1, 1, 2.0)
    cal.set_offset(1, 1, 1, 10.0)

    trace = step_trace(1000, [(150, 1000), (450, 600)])
    pulses = cal.process_trace(1, 1, 1, trace)

    assert len(pulses) == 2
    for pulse in pulses:
        r = int(np.trunc(pulse.raw_amplitude))
        assert 2 * (r - 0.5) + 10 < pulse.energy <= 2 * (r + 0.5) + 10
    assert pulses[1].cfd_time - pulses[0].cfd_time == pytest.approx(300)

    assert cal.process_trace(0, 0, 9, trace) == []


def test_validate():
    settings = FebexSettings(1, 1, 2)
    config = {"febex_0_0_1.MWD.Window": 0, "febex_0_0_1.CFD.DelayTime": 120}

    cal = Calibration(config, settings=settings)
    problems = cal.validate()
    assert len(problems) == 2
    assert all(p.startswith("febex_0_0_1") for p in problems)

    with pytest.raises(ParameterError) as exc:
        Calibration(config, settings=settings, strict=True)
    assert len(exc.value.problems) == 2

    # malformed parameters are not fatal when processing
    assert cal.process_trace(0, 0, 1, np.zeros(500)) == []


def test_to_dict_roundtrip(cal):
    out = cal.to_dict()
    assert out["NumberOfFebexSfps"] == 2
    assert out["febex_0_1_2.Type"] == "Qlong"
    assert out["febex_1_0_3.MWD.Window"] == 60
    assert len(out) == 3 + 2 * 2 * 4 * len(PARAMETERS)

    other = Calibration(out)
    for address in np.ndindex(*cal.settings.shape):
        assert other.get_channel(*address) == cal.get_channel(*address)


def test_read_calibration_resets(cal):
    cal.read_calibration({"febex_0_0_0.Gain": 3})
    assert cal.get_gain(0, 0, 0) == 3
    assert cal.get_type(0, 1, 2) == "Qshort"
    assert cal.settings.shape == (2, 2, 4)
