from __future__ import annotations


class DSPError(Exception):
    """Base class for signal processing errors."""

    pass


class ParameterError(DSPError):
    """Error thrown when a channel's filter parameters break the invariants
    of the moving-window deconvolution.

    Attributes
    ----------
    problems: list[str]
        one message per offending channel parameter.
    """

    def __init__(self, problems: list[str]) -> None:
        super().__init__(f"{len(problems)} invalid filter parameter(s)")
        self.problems = list(problems)

    def __str__(self) -> str:
        return "\n".join([super().__str__()] + self.problems)
