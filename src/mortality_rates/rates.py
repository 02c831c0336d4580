"""
mortality_rates/rates.py - Crude and Age-Standardized Death Rates

Mathematical Framework:
- Crude death rate per age group: CDR = deaths / pop
- Direct standardization over an age band B with reference weights prop:

      ASCDR_B = 100000 × Σ_{a∈B} CDR_a × prop_a / Σ_{a∈B} prop_a

  Terms with an undefined CDR contribute nothing to the numerator, but the
  denominator always runs over every in-band age group. prop is defined on
  the full 25+ domain, so dividing by the in-band weight sum renormalizes
  the 25-64 and 65+ bands.
- National rates re-aggregate deaths and population across states before
  standardizing; they are not averages of state rates.

Undefined rates are NaN and stay NaN through every step.

Author: State Mortality Rates Project
License: MIT
"""

from enum import Enum
from typing import List, Optional
import logging

import pandas as pd

from .exceptions import UNDEFINED_RATE
from .ingestion import CountStatus, sort_by_key
from .population import age_group_bounds

logger = logging.getLogger(__name__)

RATE_SCALE = 100000.0
JOIN_KEYS = ['year', 'state', 'ageGroup']
STATE_KEYS = ['year', 'state', 'cause']
NATIONAL_KEYS = ['year', 'cause']

RATE_COLUMNS = [
    'year', 'state', 'cause', 'ageGroup', 'startAge', 'endAge',
    'deaths', 'deathsStatus', 'pop', 'CDR', 'prop',
]


class AgeBand(Enum):
    """Age bands of the standardized rates, restricted on startAge."""
    ALL_AGES = ("ASCDR25Plus", "25+", None, None)
    WORKING_AGE = ("ASCDR2564", "25-64", None, 65)
    OLDER_AGE = ("ASCDR65Plus", "65+", 65, None)

    def __init__(self, column: str, label: str,
                 lower: Optional[int], upper: Optional[int]):
        self.column = column
        self.label = label
        self.lower = lower
        self.upper = upper

    def includes(self, start_age: pd.Series) -> pd.Series:
        """Mask of rows in the band; unknown start ages are only in ALL_AGES."""
        mask = pd.Series(True, index=start_age.index)
        if self.lower is not None:
            mask &= start_age >= self.lower
        if self.upper is not None:
            mask &= start_age < self.upper
        return mask.fillna(False).astype(bool)


BAND_COLUMNS = [band.column for band in AgeBand]


def crude_rate(deaths: pd.Series, pop: pd.Series) -> pd.Series:
    """deaths / pop, NaN where either is missing or pop is zero."""
    deaths = pd.to_numeric(deaths, errors='coerce').astype('float64')
    pop = pd.to_numeric(pop, errors='coerce').astype('float64')
    pop = pop.where(pop > 0, UNDEFINED_RATE)
    return deaths / pop


# =============================================================================
# RATE CALCULATOR
# =============================================================================

def compute_crude_rates(mortality: pd.DataFrame,
                        population: pd.DataFrame,
                        distribution: pd.DataFrame) -> pd.DataFrame:
    """
    Full outer join of mortality and population with per-group CDR.

    Rows present on only one side are kept with an undefined CDR, as are
    rows whose population is zero and rows whose death count was
    unavailable in the extracts. The reference weight prop is attached by
    age group.
    """
    merged = population.merge(
        mortality,
        on=JOIN_KEYS,
        how='outer',
        indicator=True,
        validate='one_to_many',
    )

    # population is the left side of this merge
    population_only = merged['_merge'] == 'left_only'
    mortality_only = merged['_merge'] == 'right_only'
    if mortality_only.any():
        labels = sorted(merged.loc[mortality_only, 'ageGroup'].astype(str).unique())
        logger.warning(
            f"{int(mortality_only.sum())} mortality rows have no population "
            f"(age groups {labels[:10]}); their rates are undefined"
        )
    if population_only.any():
        logger.info(f"{int(population_only.sum())} population rows have no mortality data")

    bounds = age_group_bounds(merged['ageGroup'])
    merged['startAge'] = merged['startAge'].fillna(bounds['startAge'])
    merged['endAge'] = merged['endAge'].fillna(bounds['endAge'])

    cdr = crude_rate(merged['deaths'], merged['pop'])
    unavailable = merged['deathsStatus'] == CountStatus.UNAVAILABLE.value
    merged['CDR'] = cdr.where(~unavailable, UNDEFINED_RATE)

    zero_pop = pd.to_numeric(merged['pop'], errors='coerce') == 0
    if zero_pop.any():
        logger.warning(f"{int(zero_pop.sum())} rows have zero population; CDR undefined")

    merged = merged.drop(columns=['_merge']).merge(
        distribution[['ageGroup', 'prop']], on='ageGroup', how='left'
    )
    merged = sort_by_key(merged, ['year', 'state', 'cause', 'ageGroup'])

    defined = int(merged['CDR'].notna().sum())
    logger.info(f"Crude rates: {len(merged)} rows, {defined} with a defined CDR")
    return merged[RATE_COLUMNS]


# =============================================================================
# AGE-STANDARDIZATION ENGINE
# =============================================================================

def standardize(rates: pd.DataFrame, keys: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Directly standardized rates per 100,000 for every AgeBand.

    Args:
        rates: table with the key columns plus startAge, CDR and prop
        keys: grouping columns (default year, state, cause)

    Returns:
        One row per key with ASCDR25Plus, ASCDR2564 and ASCDR65Plus.
        Undefined CDR × prop terms add nothing to the numerator; a band is
        undefined only when its weight sum is zero or undefined.
    """
    keys = keys or STATE_KEYS
    work = rates[keys].copy()
    term = rates['CDR'].astype('float64') * rates['prop'].astype('float64')
    weight = rates['prop'].astype('float64')
    start_age = pd.to_numeric(rates['startAge'], errors='coerce')

    for band in AgeBand:
        in_band = band.includes(start_age)
        work[f"{band.column}_num"] = term.where(in_band)
        work[f"{band.column}_den"] = weight.where(in_band)

    grouped = work.groupby(keys, dropna=True)
    sums = grouped.sum(min_count=1).reset_index()

    result = sums[keys].copy()
    for band in AgeBand:
        num = sums[f"{band.column}_num"].fillna(0.0)
        den = sums[f"{band.column}_den"].where(lambda d: d > 0, UNDEFINED_RATE)
        result[band.column] = RATE_SCALE * num / den

    result = result.sort_values(keys, kind='mergesort').reset_index(drop=True)
    undefined = int(result[BAND_COLUMNS].isna().sum().sum())
    if undefined:
        logger.warning(f"{undefined} standardized rates are undefined")
    logger.info(f"Standardized {len(result)} groups by {keys}")
    return result


# =============================================================================
# NATIONAL AGGREGATOR
# =============================================================================

def national_crude_rates(rates: pd.DataFrame) -> pd.DataFrame:
    """
    Deaths and population summed over states per (year, cause, ageGroup).

    Unavailable counts and missing populations are dropped from the sums;
    a sum with nothing left in it is undefined rather than zero.
    """
    work = rates[rates['cause'].notna()].copy()
    known = work['deathsStatus'] != CountStatus.UNAVAILABLE.value
    work['deaths'] = pd.to_numeric(work['deaths'], errors='coerce').astype('float64').where(known)
    work['pop'] = pd.to_numeric(work['pop'], errors='coerce').astype('float64')

    national = work.groupby(['year', 'cause', 'ageGroup'], as_index=False).agg(
        startAge=('startAge', 'first'),
        deaths=('deaths', lambda s: s.sum(min_count=1)),
        pop=('pop', lambda s: s.sum(min_count=1)),
        prop=('prop', 'first'),
    )
    national['CDR'] = crude_rate(national['deaths'], national['pop'])
    return sort_by_key(national, ['year', 'cause', 'ageGroup'])


def national_rates(rates: pd.DataFrame) -> pd.DataFrame:
    """Standardized national rates per (year, cause) from re-aggregated counts."""
    return standardize(national_crude_rates(rates), NATIONAL_KEYS)
