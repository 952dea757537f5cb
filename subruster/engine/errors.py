from __future__ import annotations

"""Exception types that are allowed to reach the CLI.

Per-candidate lookup failures never raise; they are folded into
`ResolutionOutcome` values and absorbed by the controller.
"""


class SubrusterError(Exception):
    """Base class for fatal subruster errors."""

    exit_code = 1


class ConfigurationError(SubrusterError):
    """Invalid runtime settings or unreadable input, raised before any lookup."""

    exit_code = 1


class ResolverUnavailableError(SubrusterError):
    """The resolver looks unreachable: every sampled lookup failed transiently."""

    exit_code = 2

    def __init__(self, message: str, sampled: int = 0):
        super().__init__(message)
        self.sampled = sampled
