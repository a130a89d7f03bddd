"""
febexdsp: moving-window deconvolution and calibration of FEBEX digitizer
traces.
"""

from ._version import version as __version__
from .cal import Calibration, FebexSettings
from .dsp import MWDParameters, PulseProcessor, PulseRecord

__all__ = [
    "__version__",
    "Calibration",
    "FebexSettings",
    "MWDParameters",
    "PulseProcessor",
    "PulseRecord",
]
