"""
mortality_rates/ages.py - Five-Year Age Groups as Intervals

Age groups are carried as right-open intervals [start, end) with an
unbounded terminal interval. Mortality extracts and census populations both
derive their labels from this one type, so the join key domains agree:

    [25, 30) -> "25-29"
    [85, inf) -> "85+"

Author: State Mortality Rates Project
License: MIT
"""

import math
import re
from dataclasses import dataclass
from typing import List, Optional

import numpy as np

DEFAULT_MIN_AGE = 25
DEFAULT_TERMINAL_AGE = 85
DEFAULT_WIDTH = 5

_CLOSED_LABEL = re.compile(r'^\s*(\d+)\s*-\s*(\d+)\s*$')
_OPEN_LABEL = re.compile(r'^\s*(\d+)\s*\+\s*$')


@dataclass(frozen=True, order=True)
class AgeGroup:
    """A right-open age interval; end is math.inf for the terminal group."""
    start: int
    end: float

    @property
    def is_open(self) -> bool:
        return math.isinf(self.end)

    @property
    def label(self) -> str:
        if self.is_open:
            return f"{self.start}+"
        return f"{self.start}-{int(self.end) - 1}"

    def contains(self, age: float) -> bool:
        return self.start <= age < self.end

    @classmethod
    def parse(cls, label: str) -> Optional['AgeGroup']:
        """
        Parse a display label ("25-29", "85+", "100+").

        Returns None for labels that are not age intervals, such as the
        "NS" (not stated) code found in CDC WONDER extracts.
        """
        if label is None:
            return None
        text = str(label)
        match = _CLOSED_LABEL.match(text)
        if match:
            start, last = int(match.group(1)), int(match.group(2))
            if last < start:
                return None
            return cls(start, last + 1)
        match = _OPEN_LABEL.match(text)
        if match:
            return cls(int(match.group(1)), math.inf)
        return None


def standard_age_groups(min_age: int = DEFAULT_MIN_AGE,
                        terminal_age: int = DEFAULT_TERMINAL_AGE,
                        width: int = DEFAULT_WIDTH) -> List[AgeGroup]:
    """Ordered groups [min_age, min_age+width), ..., [terminal_age, inf)."""
    groups = [AgeGroup(start, start + width)
              for start in range(min_age, terminal_age, width)]
    groups.append(AgeGroup(terminal_age, math.inf))
    return groups


def bin_edges(groups: List[AgeGroup]) -> List[float]:
    """Edges for pd.cut(right=False) matching a list of contiguous groups."""
    return [g.start for g in groups] + [np.inf]


def collapse_label(label: str, terminal_age: int = DEFAULT_TERMINAL_AGE) -> str:
    """
    Collapse any label at or above the terminal age into the open group.

    "85-89", "90-94", "95-99" and "100+" all become "85+". Labels that do
    not parse are returned verbatim so they stay visibly unmatched.
    """
    group = AgeGroup.parse(label)
    if group is None:
        return label
    if group.start >= terminal_age:
        return AgeGroup(terminal_age, math.inf).label
    return group.label


def start_age_of(label: str) -> float:
    """Lower bound of a label, NaN when it is not an age interval."""
    group = AgeGroup.parse(label)
    return float(group.start) if group is not None else np.nan
