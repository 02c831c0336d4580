"""
tests/conftest.py - Synthetic CDC WONDER extracts and census estimates

Two states (Alabama, Alaska), two years (2019, 2020), two causes.

Population: 100 persons at every single age 25-84 and 250 at age 85
(top-coded), per state and year, so every closed five-year group holds 500
and 85+ holds 250. Reference weights: 0.08 per closed group, 0.04 for 85+.

Author: State Mortality Rates Project
License: MIT
"""

from pathlib import Path

import pandas as pd
import pytest

from mortality_rates import PipelineConfig

AGE_CODES = [
    "25-29", "30-34", "35-39", "40-44", "45-49", "50-54", "55-59",
    "60-64", "65-69", "70-74", "75-79", "80-84",
    "85-89", "90-94", "95-99", "100+",
]

HEADER = [
    "Notes", "Residence State", "Residence State Code",
    "Five-Year Age Groups", "Five-Year Age Groups Code", "Deaths",
]

FOOTER = [
    '"---"',
    '"Dataset: Multiple Cause of Death, 1999-2020"',
    '"Query Parameters:"',
    '"---"',
]

STATE_CODES = {"Alabama": "01", "Alaska": "02"}


def _quote(value) -> str:
    if isinstance(value, int):
        return str(value)
    return f'"{value}"' if value != "" else ""


def write_extract(path: Path, rows, footer: bool = True) -> Path:
    """
    Write a tab-delimited extract in the CDC WONDER export layout.

    rows: (notes, state, age_code, deaths); deaths is an int or a sentinel.
    """
    lines = ["\t".join(f'"{h}"' for h in HEADER)]
    for notes, state, age_code, deaths in rows:
        fields = [
            notes,
            state,
            STATE_CODES.get(state, ""),
            f"{age_code} years" if age_code else "",
            age_code,
            deaths,
        ]
        lines.append("\t".join(_quote(f) for f in fields))
    if footer:
        lines.extend(FOOTER)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def state_rows(state: str, counts: dict):
    """Rows for every age code; codes not in counts get 0 deaths."""
    return [("", state, code, counts.get(code, 0)) for code in AGE_CODES]


@pytest.fixture
def mortality_dir(tmp_path) -> Path:
    directory = tmp_path / "mortality"
    directory.mkdir()

    write_extract(directory / "all_cause_2019.txt", [
        *state_rows("Alabama", {"25-29": 5, "85-89": 20, "90-94": 5}),
        ("", "Alaska", "25-29", "Suppressed"),
        ("", "Alaska", "85-89", 10),
        ("Total", "Alabama", "", 30),
        ("Total", "", "", 40),
    ])
    write_extract(directory / "all_cause_2020.txt", [
        *state_rows("Alabama", {"25-29": 10, "85-89": 20, "90-94": 5}),
        ("", "Alaska", "25-29", 3),
        ("", "Alaska", "85-89", 10),
        ("Total", "", "", 48),
    ])
    write_extract(directory / "covid_2020.txt", [
        ("", "Alabama", "85-89", 4),
        ("", "Alaska", "85-89", "Suppressed"),
    ])
    return directory


def population_frame(years=(2019, 2020)) -> pd.DataFrame:
    rows = []
    for state_fips, name in (("01", "Alabama"), ("02", "Alaska"), ("00", "United States")):
        sumlev = "010" if name == "United States" else "040"
        for sex in (0, 1, 2):
            ages = list(range(20, 86)) + [999]
            for age in ages:
                if age == 999:
                    value = 999999
                elif age == 85:
                    value = 250
                else:
                    value = 100
                if sex != 0:
                    value = value // 2
                row = {
                    "SUMLEV": sumlev, "REGION": "3", "DIVISION": "6",
                    "STATE": state_fips, "NAME": name, "SEX": sex, "AGE": age,
                    "ESTBASE2010_CIV": value,
                }
                for year in years:
                    row[f"POPEST{year}_CIV"] = value
                rows.append(row)
    return pd.DataFrame(rows)


@pytest.fixture
def population_file(tmp_path) -> Path:
    path = tmp_path / "SC-EST2020-AGESEX-CIV.csv"
    population_frame().to_csv(path, index=False)
    return path


@pytest.fixture
def config(mortality_dir, population_file, tmp_path) -> PipelineConfig:
    return PipelineConfig(
        mortality_dir=mortality_dir,
        population_file=population_file,
        output_dir=tmp_path / "output",
        reference_year=2019,
    )
