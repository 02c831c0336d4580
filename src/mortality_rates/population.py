"""
mortality_rates/population.py - Census Population Denominators

Turns the census single-year-of-age estimates (one row per state x sex x
age, one POPESTyyyy column per estimate year) into population counts by
five-year age group, and derives the national reference-year age
distribution used as standardization weights.

Binning is right-open: [25,30), [30,35), ..., [80,85), [85,inf).

Author: State Mortality Rates Project
License: MIT
"""

import re
from pathlib import Path
from typing import Dict, Optional, Union
import logging

import numpy as np
import pandas as pd

from .ages import AgeGroup, bin_edges
from .config import PipelineConfig
from .exceptions import SchemaMismatch, SourceReadError

logger = logging.getLogger(__name__)

POPULATION_COLUMNS = ['year', 'state', 'ageGroup', 'startAge', 'endAge', 'pop']


def load_population(config: PipelineConfig,
                    path: Optional[Union[str, Path]] = None) -> pd.DataFrame:
    """Read the census estimates file; state names are kept as text."""
    path = Path(path) if path is not None else config.population_file
    try:
        df = pd.read_csv(path, dtype={config.population_columns.state: str},
                         encoding='latin-1')
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise SourceReadError(f"Cannot read population file {path}: {exc}", path) from exc
    logger.info(f"Loaded population file {path.name}: {len(df)} rows")
    return df


def year_columns(df: pd.DataFrame, pattern: str) -> Dict[str, int]:
    """Estimate-year columns keyed to their year."""
    regex = re.compile(pattern)
    found = {}
    for col in df.columns:
        match = regex.match(str(col))
        if match:
            found[col] = int(match.group(1))
    return found


def bin_population(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """
    Filter, bin and reshape census estimates to (year, state, ageGroup).

    Keeps the both-sexes rows at or above min_age, drops the all-ages total
    row and the national row, sums single years of age into the configured
    five-year groups, and melts the per-year columns to long form.

    Raises:
        SchemaMismatch: if the state/sex/age columns or every estimate-year
            column are missing
    """
    cols = config.population_columns
    missing = [c for c in (cols.state, cols.sex, cols.age) if c not in raw.columns]
    years = year_columns(raw, cols.year_pattern)
    if not years:
        missing.append(cols.year_pattern)
    if missing:
        raise SchemaMismatch('population estimates', missing)

    df = raw[[cols.state, cols.sex, cols.age, *years]].rename(
        columns={cols.state: 'state', cols.sex: 'sex', cols.age: 'age'}
    )
    df['sex'] = pd.to_numeric(df['sex'], errors='coerce')
    df['age'] = pd.to_numeric(df['age'], errors='coerce')
    df['state'] = df['state'].str.strip()

    keep = (
        (df['sex'] == config.aggregate_sex_code)
        & (df['age'] != config.total_age_code)
        & (df['age'] >= config.min_age)
    )
    if config.national_label:
        keep &= df['state'] != config.national_label
    df = df[keep].copy()

    groups = config.age_groups
    df['ageGroup'] = pd.cut(
        df['age'],
        bins=bin_edges(groups),
        right=False,
        labels=[g.label for g in groups],
    ).astype(str)

    for col in years:
        df[col] = pd.to_numeric(df[col], errors='coerce')
    binned = df.groupby(['state', 'ageGroup'], as_index=False)[list(years)].sum(min_count=1)

    long = binned.melt(
        id_vars=['state', 'ageGroup'],
        value_vars=list(years),
        var_name='column',
        value_name='pop',
    )
    long['year'] = long['column'].map(years).astype('int64')
    long['pop'] = long['pop'].round().astype('Int64')

    bounds = {g.label: g for g in groups}
    long['startAge'] = long['ageGroup'].map(lambda label: bounds[label].start).astype('int64')
    long['endAge'] = long['ageGroup'].map(lambda label: float(bounds[label].end))

    long = long.sort_values(['year', 'state', 'startAge'], kind='mergesort') \
               .reset_index(drop=True)

    logger.info(
        f"Binned population: {long['state'].nunique()} states, "
        f"{len(groups)} age groups, years {sorted(set(years.values()))}"
    )
    return long[POPULATION_COLUMNS]


def reference_distribution(population: pd.DataFrame, reference_year: int) -> pd.DataFrame:
    """
    National age distribution of the reference year.

    prop = pop / total pop, summed across all states; the props of the full
    age-group domain sum to 1.
    """
    ref = population[population['year'] == reference_year]
    if ref.empty:
        available = sorted(population['year'].unique())
        raise ValueError(
            f"Reference year {reference_year} not in population data (have {available})"
        )

    dist = ref.groupby(['startAge', 'ageGroup'], as_index=False)['pop'].sum()
    dist['pop'] = dist['pop'].astype('int64')
    total = dist['pop'].sum()
    if total <= 0:
        raise ValueError(f"Reference year {reference_year} has no population")
    dist['prop'] = dist['pop'] / float(total)

    logger.info(f"Reference distribution {reference_year}: total pop {total:,}")
    logger.debug(f"Sum of props: {dist['prop'].sum():.12f}")
    return dist.sort_values('startAge')[['ageGroup', 'pop', 'prop']].reset_index(drop=True)


def age_group_bounds(labels: pd.Series) -> pd.DataFrame:
    """startAge/endAge for labels; NaN where a label is not an interval."""
    parsed = labels.map(AgeGroup.parse)
    return pd.DataFrame({
        'startAge': parsed.map(lambda g: float(g.start) if g is not None else np.nan),
        'endAge': parsed.map(lambda g: float(g.end) if g is not None else np.nan),
    }, index=labels.index)
