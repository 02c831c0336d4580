"""
mortality_rates/config.py - Pipeline Configuration

All tunables of a run live in one validated PipelineConfig: input and
output locations, source column names, sentinel tokens, census filter codes,
the age-group grid and the standardization reference year.

A run is configured either in code or from a YAML file:

    mortality_dir: data/mortality
    population_file: data/SC-EST2020-AGESEX-CIV.csv
    output_dir: output
    reference_year: 2019

Author: State Mortality Rates Project
License: MIT
"""

from pathlib import Path
from typing import Dict, List, Optional, Union
import logging

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .ages import AgeGroup, standard_age_groups
from .exceptions import SourceReadError

logger = logging.getLogger(__name__)


# =============================================================================
# SOURCE SCHEMAS
# =============================================================================

class MortalitySourceColumns(BaseModel):
    """Column names in the CDC WONDER multiple-cause extracts."""
    notes: str = "Notes"
    state: str = "Residence State"
    age_group: str = "Five-Year Age Groups Code"
    deaths: str = "Deaths"


class PopulationSourceColumns(BaseModel):
    """Column names in the census single-year-of-age estimates file."""
    state: str = "NAME"
    sex: str = "SEX"
    age: str = "AGE"
    year_pattern: str = Field(
        default=r"^POPEST(\d{4})(?:_CIV)?$",
        description="Regex selecting estimate-year columns; group 1 is the year"
    )


# =============================================================================
# PIPELINE CONFIGURATION
# =============================================================================

class PipelineConfig(BaseModel):
    """Complete configuration of one rate computation run."""
    mortality_dir: Path
    population_file: Path
    output_dir: Path = Path("output")

    # Mortality extracts
    file_pattern: str = "*.txt"
    missing_tokens: List[str] = Field(
        default_factory=lambda: ["Missing", "Suppressed", "Not Applicable"]
    )
    total_marker: str = "Total"
    footer_marker: str = "---"
    century: int = 2000
    mortality_columns: MortalitySourceColumns = Field(default_factory=MortalitySourceColumns)

    # Census population
    population_columns: PopulationSourceColumns = Field(default_factory=PopulationSourceColumns)
    aggregate_sex_code: int = 0
    total_age_code: int = 999
    national_label: Optional[str] = "United States"

    # Age grid and standardization
    min_age: int = 25
    terminal_age: int = 85
    age_width: int = 5
    reference_year: int = 2019

    # Causes
    cause_labels: Dict[str, str] = Field(default_factory=dict)
    selected_causes: List[str] = Field(
        default_factory=lambda: ["All Causes", "COVID-19", "Non-COVID-19"]
    )

    write_excel: bool = False

    @field_validator('age_width')
    @classmethod
    def _positive_width(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"age_width must be positive, got {v}")
        return v

    @model_validator(mode='after')
    def _aligned_grid(self) -> 'PipelineConfig':
        span = self.terminal_age - self.min_age
        if span <= 0 or span % self.age_width:
            raise ValueError(
                f"terminal_age {self.terminal_age} must lie a whole number of "
                f"{self.age_width}-year bins above min_age {self.min_age}"
            )
        return self

    @property
    def age_groups(self) -> List[AgeGroup]:
        return standard_age_groups(self.min_age, self.terminal_age, self.age_width)

    def snapshot(self) -> Dict:
        """JSON-safe copy of the settings for the run manifest."""
        return self.model_dump(mode='json')

    @classmethod
    def from_yaml(cls, path: Union[str, Path], **overrides) -> 'PipelineConfig':
        """
        Load a configuration file; keyword overrides replace file values.

        Relative input/output paths are resolved against the file's folder.
        """
        path = Path(path)
        try:
            with path.open('r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
        except OSError as exc:
            raise SourceReadError(f"Cannot read configuration {path}: {exc}", path) from exc

        for key in ('mortality_dir', 'population_file', 'output_dir'):
            if key in raw and not Path(raw[key]).is_absolute():
                raw[key] = path.parent / raw[key]
        raw.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**raw)
        logger.info(f"Loaded configuration from {path.name}")
        return config
