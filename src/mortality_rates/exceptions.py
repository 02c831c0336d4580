"""
mortality_rates/exceptions.py - Pipeline Error Taxonomy

Structural failures abort the run before any output is written:
- SourceReadError: input directory/file missing or unparsable
- MalformedCauseName: a file name that yields no cause label
- SchemaMismatch: expected columns absent after selection/rename

Undefined rates are data, not errors. They travel through every table as
NaN (UNDEFINED_RATE) and are written to the outputs as empty cells.

Author: State Mortality Rates Project
License: MIT
"""

from typing import Iterable, Optional

import numpy as np
import pandas as pd


UNDEFINED_RATE = np.nan


def is_undefined(value) -> bool:
    """True when a CDR/ASCDR value could not be computed."""
    return bool(pd.isna(value))


class MortalityRatesError(Exception):
    """Base class for all fatal pipeline errors."""


class SourceReadError(MortalityRatesError, OSError):
    """Raised when an input directory or file cannot be read as a table."""

    def __init__(self, message: str, path: Optional[object] = None):
        super().__init__(message)
        self.path = path


class MalformedCauseName(MortalityRatesError, ValueError):
    """Raised when a data-file name does not yield a usable cause label."""

    def __init__(self, filename: str, reason: Optional[str] = None):
        reason = reason or "it must start with a non-digit, non-hyphen cause code"
        super().__init__(
            f"Cannot derive a cause label from file name {filename!r}: {reason}"
        )
        self.filename = filename


class SchemaMismatch(MortalityRatesError, KeyError):
    """Raised when a table stage is missing columns it requires."""

    def __init__(self, stage: str, missing: Iterable[str]):
        self.stage = stage
        self.missing = sorted(missing)
        super().__init__(f"{stage}: missing expected columns {self.missing}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]
