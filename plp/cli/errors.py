"""Exit-code contract for the plp CLI."""
from __future__ import annotations

import enum


class ExitCode(enum.IntEnum):
    """Standardised CLI exit codes.

    0 - success
    1 - user error (bad arguments, invalid input)
    3 - server / internal error
    """

    SUCCESS = 0
    USER_ERROR = 1
    INTERNAL_ERROR = 3
