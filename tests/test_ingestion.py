"""
tests/test_ingestion.py - Mortality Loader and Normalizer

Tests:
1. Loader: sentinels, leading zeros, footer removal, cause/year tagging
2. Loader failures: missing directory, no files, unparsable files
3. Normalizer: totals dropped, terminal bins collapsed, completion,
   aggregation and count status

Author: State Mortality Rates Project
License: MIT
"""

import numpy as np
import pandas as pd
import pytest

from mortality_rates.config import PipelineConfig
from mortality_rates.exceptions import MalformedCauseName, SchemaMismatch, SourceReadError
from mortality_rates.ingestion import (
    CountStatus,
    MortalityLoader,
    complete_cross_product,
    normalize_mortality,
)

from conftest import write_extract


def _config(tmp_path, **kwargs) -> PipelineConfig:
    return PipelineConfig(
        mortality_dir=tmp_path,
        population_file=tmp_path / "pop.csv",
        **kwargs,
    )


class TestMortalityLoader:
    """Every extract is read as text and tagged with its cause and year."""

    def test_loads_and_tags_all_files(self, config):
        """Every extract is loaded and tagged from its file name."""
        extract = MortalityLoader(config).load()

        assert len(extract.files) == 3
        assert sorted(extract.data['cause'].unique()) == ["AllCause", "Covid"]
        assert sorted(extract.data['year'].unique()) == [2019, 2020]
        assert [f.name for f in extract.files] == [
            "all_cause_2019.txt", "all_cause_2020.txt", "covid_2020.txt"
        ]

    def test_footer_is_dropped(self, config):
        """Rows from the export footer onward are discarded."""
        extract = MortalityLoader(config).load()
        notes = extract.data['Notes'].str.strip()
        assert not notes.isin(["---", "Dataset: Multiple Cause of Death, 1999-2020"]).any()
        # 16 Alabama rows + 2 Alaska rows + 2 Total rows
        all_cause_2019 = extract.data[(extract.data['cause'] == "AllCause")
                                  & (extract.data['year'] == 2019)]
        assert len(all_cause_2019) == 20

    def test_leading_zeros_preserved(self, config):
        """State codes are read as text."""
        extract = MortalityLoader(config).load()
        codes = set(extract.data['Residence State Code'].unique())
        assert "01" in codes and "02" in codes

    def test_sentinels_are_missing_not_zero(self, tmp_path):
        """Missing, Suppressed and Not Applicable read as NA."""
        write_extract(tmp_path / "covid_2020.txt", [
            ("", "Alabama", "25-29", "Suppressed"),
            ("", "Alabama", "30-34", "Missing"),
            ("", "Alabama", "35-39", "Not Applicable"),
            ("", "Alabama", "40-44", 0),
        ])
        extract = MortalityLoader(_config(tmp_path)).load()
        deaths = extract.data['Deaths'].tolist()

        assert all(pd.isna(d) for d in deaths[:3]), f"Sentinels should be NA, got {deaths}"
        assert deaths[3] == "0"

    def test_sentinels_only_apply_to_death_counts(self, tmp_path):
        """Sentinel tokens in other columns stay text."""
        write_extract(tmp_path / "covid_2020.txt", [
            ("", "Alabama", "Not Applicable", 3),
        ])
        extract = MortalityLoader(_config(tmp_path)).load()
        assert extract.data['Five-Year Age Groups Code'].iloc[0] == "Not Applicable"

    def test_manifest_records_hashes(self, config):
        """Each file gets a SHA-256 in the audit summary."""
        summary = MortalityLoader(config).load().get_summary()
        assert summary['file_count'] == 3
        assert all(len(f['sha256']) == 64 for f in summary['files'])


class TestMortalityLoaderFailures:
    """Structural input problems abort the load."""

    def test_missing_directory(self, tmp_path):
        """A missing directory aborts the load."""
        with pytest.raises(SourceReadError):
            MortalityLoader(_config(tmp_path)).load(tmp_path / "nope")

    def test_no_matching_files(self, tmp_path):
        """A directory with no extracts aborts the load."""
        (tmp_path / "readme.md").write_text("nothing here")
        with pytest.raises(SourceReadError):
            MortalityLoader(_config(tmp_path)).load()

    def test_empty_file(self, tmp_path):
        """An empty extract cannot be parsed."""
        (tmp_path / "covid_2020.txt").write_text("")
        with pytest.raises(SourceReadError):
            MortalityLoader(_config(tmp_path)).load()

    def test_malformed_file_name(self, tmp_path):
        """A file name without a cause code aborts the load."""
        write_extract(tmp_path / "2020_covid.txt", [("", "Alabama", "25-29", 1)])
        with pytest.raises(MalformedCauseName):
            MortalityLoader(_config(tmp_path)).load()


def _raw(rows):
    """Raw loader-shaped frame: (notes, state, age, deaths, cause, year)."""
    return pd.DataFrame(rows, columns=[
        "Notes", "Residence State", "Five-Year Age Groups Code", "Deaths", "cause", "year",
    ])


class TestMortalityNormalizer:
    """
    Setup: Alabama has Covid counts in 25-29 and across the 85+ bins
    (100+ suppressed); Alaska has a suppressed Covid 25-29 count and an
    AllCause 85-89 count. A Total row and a national row are present.

    Expectation: 2 states x 1 year x 2 causes x 2 age groups = 8 rows.
    """

    @pytest.fixture
    def normalized(self, tmp_path):
        raw = _raw([
            ("", "Alabama", "25-29", "5", "Covid", 2020),
            ("", "Alabama", "85-89", "3", "Covid", 2020),
            ("", "Alabama", "90-94", "2", "Covid", 2020),
            ("", "Alabama", "100+", np.nan, "Covid", 2020),
            ("Total", "Alabama", "", "10", "Covid", 2020),
            ("", "", "25-29", "99", "Covid", 2020),
            ("", "Alaska", "25-29", np.nan, "Covid", 2020),
            ("", "Alaska", "85-89", "4", "AllCause", 2020),
        ])
        return normalize_mortality(raw, _config(tmp_path))

    def _row(self, df, state, cause, age):
        match = df[(df['state'] == state) & (df['cause'] == cause) & (df['ageGroup'] == age)]
        assert len(match) == 1, f"Expected exactly one row for {state}/{cause}/{age}"
        return match.iloc[0]

    def test_every_combination_exactly_once(self, normalized):
        """Completion yields each key once with a non-negative count."""
        assert len(normalized) == 8
        assert not normalized.duplicated(['year', 'state', 'cause', 'ageGroup']).any()
        assert (normalized['deaths'] >= 0).all()
        assert normalized['deaths'].notna().all()

    def test_age_domain_after_collapse(self, normalized):
        """Only the grid labels remain after collapsing."""
        assert set(normalized['ageGroup']) == {"25-29", "85+"}

    def test_terminal_bins_summed(self, normalized):
        """85-89 and 90-94 are summed; the suppressed 100+ adds nothing."""
        row = self._row(normalized, "Alabama", "Covid", "85+")
        assert row['deaths'] == 5
        assert row['deathsStatus'] == CountStatus.OBSERVED.value

    def test_unavailable_distinct_from_absent(self, normalized):
        """Suppressed and never-reported counts keep distinct statuses."""
        suppressed = self._row(normalized, "Alaska", "Covid", "25-29")
        absent = self._row(normalized, "Alaska", "Covid", "85+")

        assert suppressed['deaths'] == 0 and absent['deaths'] == 0
        assert suppressed['deathsStatus'] == CountStatus.UNAVAILABLE.value
        assert absent['deathsStatus'] == CountStatus.ABSENT.value

    def test_completion_fills_other_causes(self, normalized):
        """A cause missing for a state is filled as absent."""
        row = self._row(normalized, "Alabama", "AllCause", "25-29")
        assert row['deaths'] == 0
        assert row['deathsStatus'] == CountStatus.ABSENT.value

    def test_national_and_total_rows_dropped(self, normalized):
        """Total rows and rows without a state are removed."""
        assert set(normalized['state']) == {"Alabama", "Alaska"}
        row = self._row(normalized, "Alabama", "Covid", "25-29")
        assert row['deaths'] == 5

    def test_missing_column_raises_schema_mismatch(self, tmp_path):
        """A missing source column is reported by its source name."""
        raw = _raw([("", "Alabama", "25-29", "5", "Covid", 2020)]).drop(columns=["Deaths"])
        with pytest.raises(SchemaMismatch) as excinfo:
            normalize_mortality(raw, _config(tmp_path))
        assert "Deaths" in excinfo.value.missing


class TestCrossProductCompletion:
    """Value sets are taken per field, not per observed combination."""

    def test_product_of_independent_sets(self):
        """Sixteen keys from two values in each of four fields."""
        df = pd.DataFrame({
            'year': [2019, 2020],
            'state': ["A", "B"],
            'cause': ["X", "Y"],
            'ageGroup': ["25-29", "85+"],
            'deaths': pd.array([1, 2], dtype="Int64"),
            'deathsStatus': [CountStatus.OBSERVED.value] * 2,
        })
        completed = complete_cross_product(df)

        assert len(completed) == 16
        absent = completed['deathsStatus'] == CountStatus.ABSENT.value
        assert absent.sum() == 14
        assert (completed.loc[absent, 'deaths'] == 0).all()
