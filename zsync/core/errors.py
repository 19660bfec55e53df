"""Exit codes for the CLI.

The numeric values are part of the command-line contract and must stay stable:
- 0: Success
- 1: User error (missing input, malformed release event)
- 4: Network error (GitHub or Zenodo rejected a request or was unreachable)
- 5: I/O error (a metadata document could not be parsed or written)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for CLI commands."""

    OK = 0
    USER_ERROR = 1
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")
