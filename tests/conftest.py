import inspect
import os
from pathlib import Path

import numpy as np
import pytest

config_dir = Path(__file__).parent / "cal" / "configs"


@pytest.fixture(scope="session")
def tmp_dir(tmp_path_factory):
    out_dir = tmp_path_factory.mktemp("data")
    assert os.path.exists(out_dir)
    return out_dir


@pytest.fixture(scope="session")
def cal_config_file():
    return config_dir / "febex-cal.yaml"


@pytest.fixture(scope="session")
def compare_numba_vs_python():
    def numba_vs_python(func, *inputs):
        """Run `func` compiled and as the undecorated python function and check
        that both give the same outputs. Returns the compiled outputs.
        """
        outputs_numba = func(*inputs)
        is_tuple = isinstance(outputs_numba, tuple)
        if not is_tuple:
            outputs_numba = (outputs_numba,)

        outputs_python = tuple(np.empty_like(out) for out in outputs_numba)
        inspect.unwrap(func)(*inputs, *outputs_python)

        for out_numba, out_python in zip(outputs_numba, outputs_python):
            assert np.allclose(out_numba, out_python, equal_nan=True)

        return outputs_numba if is_tuple else outputs_numba[0]

    return numba_vs_python


@pytest.fixture(scope="session")
def step_trace():
    def make_step_trace(n_samples, steps, baseline=0):
        """Noiseless trace made of ideal steps, given as ``(index, height)``."""
        trace = np.full(n_samples, float(baseline))
        for t0, height in steps:
            trace[t0:] += height
        return trace

    return make_step_trace
