"""
Digital signal processing of FEBEX traces: the moving-window deconvolution
and constant-fraction discriminator processors, and the
:class:`.PulseProcessor` that chains them over a single trace.
"""

from .errors import DSPError, ParameterError
from .pulse_processor import MWDParameters, PulseProcessor, PulseRecord

__all__ = [
    "DSPError",
    "MWDParameters",
    "ParameterError",
    "PulseProcessor",
    "PulseRecord",
]
