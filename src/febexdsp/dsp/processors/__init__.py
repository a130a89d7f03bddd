r"""
Contains the FEBEX trace processors, implemented using Numba's
:func:`numba.guvectorize` to implement NumPy's :class:`numpy.ufunc` interface.
All of the functions are void functions whose outputs are given as
parameters, so they broadcast over arrays of traces and can fill
pre-allocated memory in place. Calling them without the output arguments
returns newly allocated arrays instead.

The processors never raise on bad input: :any:`numpy.nan` in a trace, or a
parameter set that breaks the filter invariants, produces :any:`numpy.nan`
outputs.
"""

from .cfd import cfd_filter
from .mwd import SKIP_SAMPLES, mwd_stages
from .mwd_trigger import mwd_trigger

__all__ = ["SKIP_SAMPLES", "cfd_filter", "mwd_stages", "mwd_trigger"]
