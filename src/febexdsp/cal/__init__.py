"""
Per-channel calibration of FEBEX data: channel-array dimensions, energy
calibration coefficients and filter parameters.
"""

from .calibration import CalibratedPulse, Calibration, ChannelParameters
from .settings import FebexSettings

__all__ = ["CalibratedPulse", "Calibration", "ChannelParameters", "FebexSettings"]
