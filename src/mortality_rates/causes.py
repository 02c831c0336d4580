"""
mortality_rates/causes.py - Cause-of-Death Labels

Each mortality extract carries its cause only in its file name:

    covid_19.txt            -> "Covid"
    non_covid_19.txt        -> "NonCovid"
    all_cause_totals_19.txt -> "AllCauseTotals"

The internal codes are then mapped to display names through the closed
Cause enumeration. Codes outside the enumeration pass through unchanged.

Author: State Mortality Rates Project
License: MIT
"""

import re
from enum import Enum
from pathlib import PurePath
from typing import Dict, Iterable, List, Optional

import pandas as pd

from .exceptions import MalformedCauseName

_LEADING_CODE = re.compile(r'^[^\d-]+')
_FIRST_DIGITS = re.compile(r'\d+')


class Cause(Enum):
    """Known internal cause codes and their display names."""
    ALL_CAUSE = ("AllCause", "All Causes")
    COVID = ("Covid", "COVID-19")
    NON_COVID = ("NonCovid", "Non-COVID-19")
    NEOPLASMS = ("Neoplasms", "Neoplasms")
    CIRCULATORY = ("Circulatory", "Circulatory Diseases")
    RESPIRATORY = ("Respiratory", "Respiratory Diseases")
    DIABETES = ("Diabetes", "Diabetes")
    ALZHEIMERS = ("Alzheimers", "Alzheimer's Disease")
    EXTERNAL = ("External", "External Causes")

    def __init__(self, code: str, display: str):
        self.code = code
        self.display = display

    @classmethod
    def from_code(cls, code: str) -> Optional['Cause']:
        for cause in cls:
            if cause.code == code:
                return cause
        return None


# =============================================================================
# CAUSE-LABEL EXTRACTION
# =============================================================================

def extract_cause_label(filename: str) -> str:
    """
    Recover the camel-style cause code from one file name.

    The leading run of characters containing no digits and no hyphens is
    split on underscores; each token has its first character upper-cased
    (the rest is left alone) and the tokens are joined without separator.

    Raises:
        MalformedCauseName: if the name starts with a digit or hyphen, or
            the leading run holds nothing but underscores
    """
    path = PurePath(str(filename))
    name = path.name
    match = _LEADING_CODE.match(path.stem)
    if not match:
        raise MalformedCauseName(name)

    tokens = match.group(0).split('_')
    label = ''.join(token[:1].upper() + token[1:] for token in tokens)
    if not label:
        raise MalformedCauseName(name)
    return label


def extract_cause_labels(filenames: Iterable[str]) -> List[str]:
    """Batch form of extract_cause_label; one label per name, same order."""
    return [extract_cause_label(name) for name in filenames]


def extract_year(filename: str, century: int = 2000) -> int:
    """
    Year encoded in a file name: its first run of digits.

    Two-digit runs ("covid_19.txt") are expanded with the given century so
    they join against four-digit census estimate years.
    """
    name = PurePath(str(filename)).name
    match = _FIRST_DIGITS.search(name)
    if not match:
        raise MalformedCauseName(name, "no year digits in file name")
    year = int(match.group(0))
    if len(match.group(0)) <= 2:
        year += century
    return year


# =============================================================================
# DISPLAY MAPPING
# =============================================================================

def cause_display_map(overrides: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Internal code -> display name, with configuration overrides applied."""
    mapping = {cause.code: cause.display for cause in Cause}
    if overrides:
        mapping.update(overrides)
    return mapping


def map_cause_label(code: str, overrides: Optional[Dict[str, str]] = None) -> str:
    return cause_display_map(overrides).get(code, code)


def map_cause_labels(causes: pd.Series,
                     overrides: Optional[Dict[str, str]] = None) -> pd.Series:
    """Vectorised mapper; unmapped codes are passed through as-is."""
    mapping = cause_display_map(overrides)
    return causes.map(lambda code: mapping.get(code, code))
