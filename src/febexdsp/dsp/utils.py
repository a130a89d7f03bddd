from collections.abc import MutableMapping
from typing import Any, Iterator

from febexdsp.utils import getenv_bool


class NumbaDefaults(MutableMapping):
    """Keyword arguments handed to :func:`numba.guvectorize` by every trace
    processor.

    Each option starts from an environment variable:

    * ``cache`` from ``FEBEXDSP_CACHE``: keep the compiled processors on disk
    * ``boundscheck`` from ``FEBEXDSP_BOUNDSCHECK``: check array indices,
      slow but useful when debugging a processor

    Examples
    --------
    >>> from numba import guvectorize
    >>> from febexdsp.dsp.utils import numba_defaults_kwargs as nb_kwargs
    >>> @guvectorize([], "", **nb_kwargs) # def proc(...): ...

    One option can be overridden for a single processor:

    >>> @guvectorize([], "", **numba_defaults(cache=False)) # def proc(...): ...

    Options changed at runtime only affect processors compiled afterwards, so
    they must be set before :mod:`febexdsp.dsp.processors` is imported.
    """

    environment = {"cache": "FEBEXDSP_CACHE", "boundscheck": "FEBEXDSP_BOUNDSCHECK"}

    def __init__(self) -> None:
        self._options = {
            option: getenv_bool(var) for option, var in self.environment.items()
        }

    def __getattr__(self, item: str) -> Any:
        try:
            return self.__dict__["_options"][item]
        except KeyError:
            raise AttributeError(item) from None

    def __setattr__(self, item: str, val: Any) -> None:
        if item == "_options":
            super().__setattr__(item, val)
        else:
            self._options[item] = val

    def __getitem__(self, item: str) -> Any:
        return self._options[item]

    def __setitem__(self, item: str, val: Any) -> None:
        self._options[item] = val

    def __delitem__(self, item: str) -> None:
        del self._options[item]

    def __iter__(self) -> Iterator:
        return iter(self._options)

    def __len__(self) -> int:
        return len(self._options)

    def __call__(self, **kwargs) -> dict:
        return {**self._options, **kwargs}

    def __repr__(self) -> str:
        return repr(self._options)


numba_defaults = NumbaDefaults()
numba_defaults_kwargs = numba_defaults
