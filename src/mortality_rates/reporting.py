"""
mortality_rates/reporting.py - Rate Table Export

Reshapes the standardized rates and writes every output of a run:
1. Long form: one row per (year, state, cause), one column per age band
2. Wide-by-year form: age band as a row dimension, one column per year
3. CSV tables, a JSON manifest and an optional Excel workbook

Writes are all-or-nothing. Every file goes to a temporary sibling first and
is moved into place only once all of them were written, so a failed run
leaves earlier outputs untouched.

Author: State Mortality Rates Project
License: MIT
"""

import json
from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.dataframe import dataframe_to_rows

from .rates import BAND_COLUMNS, STATE_KEYS, AgeBand

logger = logging.getLogger(__name__)


# =============================================================================
# RESHAPING
# =============================================================================

def to_long(ascdr: pd.DataFrame, keys: Optional[List[str]] = None) -> pd.DataFrame:
    """One row per key with the three band rates as columns."""
    keys = keys or STATE_KEYS
    return ascdr[keys + BAND_COLUMNS].sort_values(keys, kind='mergesort') \
                                     .reset_index(drop=True)


def to_wide_by_year(ascdr: pd.DataFrame, keys: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Pivot rates so each year is its own column.

    Rows are keyed by the non-year keys plus ageBand ("25+", "25-64",
    "65+"); year columns are named by the year as text.
    """
    keys = keys or STATE_KEYS
    row_keys = [k for k in keys if k != 'year']
    labels = {band.column: band.label for band in AgeBand}

    long = ascdr[keys + BAND_COLUMNS].melt(
        id_vars=keys, value_vars=BAND_COLUMNS, var_name='ageBand', value_name='rate'
    )
    long['ageBand'] = long['ageBand'].map(labels)

    wide = long.pivot(index=row_keys + ['ageBand'], columns='year', values='rate')
    wide.columns = [str(year) for year in wide.columns]
    wide = wide.reset_index()

    band_order = {band.label: i for i, band in enumerate(AgeBand)}
    wide = wide.assign(_band=wide['ageBand'].map(band_order)) \
               .sort_values(row_keys + ['_band'], kind='mergesort') \
               .drop(columns=['_band']).reset_index(drop=True)
    return wide


def restrict_causes(ascdr: pd.DataFrame, causes: List[str]) -> pd.DataFrame:
    """Subset of the state rates for the selected cause display names."""
    subset = ascdr[ascdr['cause'].isin(causes)]
    missing = sorted(set(causes) - set(subset['cause'].unique()))
    if missing:
        logger.warning(f"Selected causes not present in the data: {missing}")
    return subset.reset_index(drop=True)


# =============================================================================
# EXCEL WORKBOOK
# =============================================================================

class RateWorkbook:
    """
    Excel rendition of the rate tables.

    One sheet per table, styled header row, frozen header and rates shown
    with one decimal. Undefined rates are left as empty cells.
    """

    RATE_FORMAT = '0.0'

    def __init__(self):
        self.workbook = Workbook()
        if 'Sheet' in self.workbook.sheetnames:
            del self.workbook['Sheet']

        self.header_font_white = Font(bold=True, size=11, color="FFFFFF")
        self.header_fill = PatternFill(start_color="366092", end_color="366092", fill_type="solid")

    def add_table(self, sheet_name: str, df: pd.DataFrame,
                  rate_columns: Optional[List[str]] = None) -> None:
        sheet = self.workbook.create_sheet(sheet_name[:31])
        clean = df.astype(object).where(df.notna(), None)
        for row in dataframe_to_rows(clean, index=False, header=True):
            sheet.append(row)

        for cell in sheet[1]:
            cell.font = self.header_font_white
            cell.fill = self.header_fill
            cell.alignment = Alignment(horizontal='center')
        sheet.freeze_panes = 'A2'

        rate_columns = set(rate_columns or [])
        for idx, name in enumerate(df.columns, start=1):
            letter = get_column_letter(idx)
            sheet.column_dimensions[letter].width = max(12, len(str(name)) + 2)
            if name in rate_columns:
                for cell in sheet[letter][1:]:
                    cell.number_format = self.RATE_FORMAT

        logger.debug(f"Added sheet {sheet.title}: {len(df)} rows")

    def save(self, output_path: Union[str, Path]) -> Path:
        output_path = Path(output_path)
        self.workbook.save(output_path)
        return output_path


def build_workbook(tables: Dict[str, pd.DataFrame]) -> RateWorkbook:
    """Workbook with the long, by-year and national rate tables."""
    book = RateWorkbook()
    sheets = [
        ('State Rates', 'ASCDRDataLong'),
        ('State Rates by Year', 'ASCDRData'),
        ('National Rates', 'ASCDRNational'),
        ('Selected Causes', 'ASCDRSelectedCauses'),
    ]
    for sheet_name, key in sheets:
        key = f"{key}.csv"
        if key not in tables:
            continue
        df = tables[key]
        rate_cols = [c for c in df.columns if c in BAND_COLUMNS or c.isdigit()]
        book.add_table(sheet_name, df, rate_cols)
    return book


# =============================================================================
# ALL-OR-NOTHING WRITER
# =============================================================================

class TableWriter:
    """Writes a run's outputs into one directory, all or nothing."""

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)

    def _tmp(self, path: Path) -> Path:
        return path.with_name(path.name + '.tmp')

    def write_all(self,
                  csv_tables: Dict[str, pd.DataFrame],
                  json_documents: Optional[Dict[str, Dict]] = None,
                  workbook: Optional[RateWorkbook] = None,
                  workbook_name: str = 'ASCDRTables.xlsx') -> List[Path]:
        """
        Write every table, then move all of them into place.

        Args:
            csv_tables: file name -> table
            json_documents: file name -> JSON-serialisable document
            workbook: optional workbook to save alongside the tables

        Returns:
            Final paths of every file written
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        staged: List[Path] = []
        try:
            for name, df in csv_tables.items():
                path = self.output_dir / name
                staged.append(path)
                df.to_csv(self._tmp(path), index=False, lineterminator="\n")

            for name, document in (json_documents or {}).items():
                path = self.output_dir / name
                staged.append(path)
                with open(self._tmp(path), 'w', encoding='utf-8', newline='\n') as f:
                    json.dump(document, f, indent=2, sort_keys=True, default=str)
                    f.write("\n")

            if workbook is not None:
                path = self.output_dir / workbook_name
                staged.append(path)
                workbook.save(self._tmp(path))
        except Exception:
            logger.error("Writing outputs failed; previous files left untouched")
            for path in staged:
                self._tmp(path).unlink(missing_ok=True)
            raise

        replaced: List[Path] = []
        try:
            for path in staged:
                self._tmp(path).replace(path)
                replaced.append(path)
                logger.info(f"Wrote {path}")
        except OSError:
            logger.error(
                f"Moving outputs into place failed after {len(replaced)} of "
                f"{len(staged)} files; already replaced: {[p.name for p in replaced]}"
            )
            for path in staged[len(replaced):]:
                self._tmp(path).unlink(missing_ok=True)
            raise
        return staged
