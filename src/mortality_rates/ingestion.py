"""
mortality_rates/ingestion.py - Mortality Extract Ingestion and Normalization

Reads CDC WONDER multiple-cause extracts (one tab-delimited .txt file per
cause and year) into a single count table, then normalizes it into one row
per (year, state, cause, ageGroup).

Death counts carry an explicit status next to the integer count:
- observed:    a numeric count was present in the extract
- unavailable: the extract reported Missing / Suppressed / Not Applicable
- absent:      the combination never appeared and was added by completion

The reported count is 0 for unavailable and absent rows, but the status is
kept so that downstream rates can tell a suppressed count from a true zero.

Author: State Mortality Rates Project
License: MIT
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

import numpy as np
import pandas as pd

from .ages import collapse_label, start_age_of
from .causes import extract_cause_label, extract_year
from .config import PipelineConfig
from .exceptions import SchemaMismatch, SourceReadError

logger = logging.getLogger(__name__)

KEY_COLUMNS = ['year', 'state', 'cause', 'ageGroup']


class CountStatus(Enum):
    """Provenance of a normalized death count."""
    OBSERVED = "observed"
    UNAVAILABLE = "unavailable"
    ABSENT = "absent"


# Precedence when several raw rows fold into one key (e.g. 85-89 .. 100+)
_STATUS_RANK = {
    CountStatus.ABSENT.value: 0,
    CountStatus.UNAVAILABLE.value: 1,
    CountStatus.OBSERVED.value: 2,
}
_RANK_STATUS = {rank: status for status, rank in _STATUS_RANK.items()}


@dataclass
class SourceFile:
    """Audit record for one extract file."""
    name: str
    sha256: str
    rows: int
    cause: str
    year: int


@dataclass
class MortalityExtract:
    """Concatenated raw extracts plus the per-file audit trail."""
    data: pd.DataFrame
    files: List[SourceFile] = field(default_factory=list)

    @property
    def total_rows(self) -> int:
        return len(self.data)

    def get_summary(self) -> Dict:
        """Summary for the run manifest."""
        return {
            'file_count': len(self.files),
            'total_rows': self.total_rows,
            'files': [
                {
                    'name': f.name,
                    'sha256': f.sha256,
                    'rows': f.rows,
                    'cause': f.cause,
                    'year': f.year,
                }
                for f in self.files
            ],
        }


def hash_file(filepath: Path) -> str:
    """SHA-256 of a file's bytes."""
    sha256 = hashlib.sha256()
    with open(filepath, 'rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            sha256.update(chunk)
    return sha256.hexdigest()


# =============================================================================
# MORTALITY LOADER
# =============================================================================

class MortalityLoader:
    """
    Loads every per-cause extract in a directory.

    Each file is read with all columns as text (so state and age codes keep
    their leading zeros); only the death-count column treats the sentinel
    tokens as missing. Rows are tagged with the cause label and year taken
    from the file name.
    """

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.columns = config.mortality_columns

    def list_files(self, directory: Union[str, Path]) -> List[Path]:
        directory = Path(directory)
        if not directory.is_dir():
            raise SourceReadError(f"Mortality directory not found: {directory}", directory)
        try:
            files = sorted(p for p in directory.glob(self.config.file_pattern) if p.is_file())
        except OSError as exc:
            raise SourceReadError(f"Cannot list {directory}: {exc}", directory) from exc
        if not files:
            raise SourceReadError(
                f"No files matching {self.config.file_pattern!r} in {directory}", directory
            )
        return files

    def read_file(self, filepath: Path) -> pd.DataFrame:
        """Read one extract, dropping the export footer."""
        try:
            df = pd.read_csv(
                filepath,
                sep='\t',
                dtype=str,
                keep_default_na=False,
                na_values={self.columns.deaths: self.config.missing_tokens},
            )
        except (OSError, UnicodeDecodeError, pd.errors.ParserError,
                pd.errors.EmptyDataError) as exc:
            raise SourceReadError(f"Cannot parse {filepath.name}: {exc}", filepath) from exc

        notes = self.columns.notes
        if notes in df.columns:
            footer = np.flatnonzero(df[notes].str.strip() == self.config.footer_marker)
            if len(footer):
                df = df.iloc[:footer[0]].copy()
        return df

    def load(self, directory: Optional[Union[str, Path]] = None) -> MortalityExtract:
        directory = Path(directory) if directory is not None else self.config.mortality_dir
        files = self.list_files(directory)

        frames = []
        audit = []
        for filepath in files:
            cause = extract_cause_label(filepath.name)
            year = extract_year(filepath.name, self.config.century)

            df = self.read_file(filepath)
            df['cause'] = cause
            df['year'] = year
            frames.append(df)

            try:
                digest = hash_file(filepath)
            except OSError as exc:
                raise SourceReadError(f"Cannot read {filepath.name}: {exc}", filepath) from exc
            audit.append(SourceFile(filepath.name, digest, len(df), cause, year))
            logger.info(f"Loaded {filepath.name}: cause={cause} year={year} rows={len(df)}")

        data = pd.concat(frames, ignore_index=True, sort=False)
        logger.info(f"Loaded {len(files)} mortality files, {len(data)} rows")
        return MortalityExtract(data=data, files=audit)


# =============================================================================
# MORTALITY NORMALIZER
# =============================================================================

def select_and_rename(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    cols = config.mortality_columns
    rename = {
        cols.notes: 'total',
        cols.state: 'state',
        cols.age_group: 'ageGroup',
        cols.deaths: 'deaths',
    }
    df = raw.rename(columns=rename)
    required = ['total', 'state', 'ageGroup', 'deaths', 'year', 'cause']
    missing = [c for c in required if c not in df.columns]
    if missing:
        # Report the source names the user would recognise
        source_names = {v: k for k, v in rename.items()}
        raise SchemaMismatch('mortality extract', [source_names.get(c, c) for c in missing])
    return df[required].copy()


def complete_cross_product(df: pd.DataFrame) -> pd.DataFrame:
    """
    Left-join the data onto the product of the observed key values.

    Each key's value set is taken independently, so every state gets every
    year, cause and age group seen anywhere. Combinations not in the data
    get deaths 0 with status "absent"; unavailable counts are left as they
    are.
    """
    levels = [sorted(df[col].dropna().unique()) for col in KEY_COLUMNS]
    grid = pd.MultiIndex.from_product(levels, names=KEY_COLUMNS).to_frame(index=False)

    completed = grid.merge(df, on=KEY_COLUMNS, how='left', indicator=True)
    added = completed['_merge'] == 'left_only'
    completed.loc[added, 'deaths'] = 0
    completed.loc[added, 'deathsStatus'] = CountStatus.ABSENT.value
    completed = completed.drop(columns=['_merge'])

    logger.info(
        f"Completion: {len(grid)} key combinations, {int(added.sum())} filled as absent"
    )
    return completed


def aggregate_counts(df: pd.DataFrame) -> pd.DataFrame:
    """Sum observed counts per key; the strongest status wins."""
    work = df.copy()
    observed = work['deathsStatus'] == CountStatus.OBSERVED.value
    work['deaths'] = work['deaths'].where(observed, 0)
    work['_rank'] = work['deathsStatus'].map(_STATUS_RANK)

    grouped = work.groupby(KEY_COLUMNS, as_index=False).agg(
        deaths=('deaths', 'sum'),
        _rank=('_rank', 'max'),
    )
    grouped['deaths'] = grouped['deaths'].astype('int64')
    grouped['deathsStatus'] = grouped['_rank'].map(_RANK_STATUS)
    return grouped.drop(columns=['_rank'])


def sort_by_key(df: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
    """Sort with age groups in age order rather than text order."""
    df = df.assign(_age=df['ageGroup'].map(start_age_of))
    order = [k if k != 'ageGroup' else '_age' for k in keys]
    if 'ageGroup' in keys:
        order.append('ageGroup')
    return df.sort_values(order, kind='mergesort', na_position='last') \
             .drop(columns=['_age']).reset_index(drop=True)


def normalize_mortality(raw: pd.DataFrame, config: PipelineConfig) -> pd.DataFrame:
    """
    Normalize raw extracts into one row per (year, state, cause, ageGroup).

    Steps, in order: select and rename; drop "Total" rows; collapse the
    terminal age bins; coerce counts (sentinels become unavailable); drop
    national rows with no state; complete the cross product; sum duplicate
    keys.

    Raises:
        SchemaMismatch: if the extract lacks any required column
    """
    df = select_and_rename(raw, config)
    n_raw = len(df)

    df = df[df['total'].fillna('').str.strip() != config.total_marker]
    logger.info(f"Dropped {n_raw - len(df)} 'Total' rows")

    df = df.assign(ageGroup=df['ageGroup'].fillna('').map(
        lambda label: collapse_label(label.strip(), config.terminal_age)
    ))

    unavailable = df['deaths'].isna()
    counts = pd.to_numeric(df['deaths'].str.replace(',', '', regex=False), errors='coerce')
    unparsable = counts.isna() & ~unavailable
    if unparsable.any():
        bad = sorted(df.loc[unparsable, 'deaths'].unique())[:5]
        logger.warning(f"{int(unparsable.sum())} death counts were not numeric (e.g. {bad}); "
                       f"treating them as unavailable")
    df = df.assign(
        deaths=counts.round().astype('Int64'),
        deathsStatus=np.where(counts.isna(), CountStatus.UNAVAILABLE.value,
                              CountStatus.OBSERVED.value),
    )
    n_unavailable = int(counts.isna().sum())
    if n_unavailable:
        logger.warning(f"{n_unavailable} death counts unavailable in the extracts")

    state = df['state'].fillna('').str.strip()
    df = df[state != ''].assign(state=state[state != ''])
    df = df.drop(columns=['total'])

    df = complete_cross_product(df)
    df = aggregate_counts(df)
    df = sort_by_key(df, KEY_COLUMNS)

    logger.info(
        f"Normalized mortality: {len(df)} rows, "
        f"{df['state'].nunique()} states, {df['cause'].nunique()} causes, "
        f"{df['year'].nunique()} years"
    )
    return df[KEY_COLUMNS + ['deaths', 'deathsStatus']]
