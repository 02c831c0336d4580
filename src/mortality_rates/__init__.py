"""
State Age-Standardized Mortality Rates

Computes crude and directly age-standardized death rates by state, year and
cause from CDC WONDER multiple-cause extracts and census single-year-of-age
population estimates, plus national rates re-aggregated across states.

Outputs:
- mortalityData.csv: mortality joined to population with crude rates
- popData.csv / popDistribution.csv: binned population and reference weights
- ASCDRData.csv: standardized state rates (25+, 25-64, 65+) by year
- ASCDRNational.csv / ASCDRSelectedCauses.csv: national and selected-cause tables

Author: State Mortality Rates Project
License: MIT
"""

__version__ = "1.0.0"
__author__ = "State Mortality Rates Project"

from .ages import (
    AgeGroup,
    standard_age_groups,
    collapse_label,
)

from .causes import (
    Cause,
    extract_cause_label,
    extract_cause_labels,
    extract_year,
    map_cause_labels,
)

from .config import (
    PipelineConfig,
    MortalitySourceColumns,
    PopulationSourceColumns,
)

from .exceptions import (
    MortalityRatesError,
    SourceReadError,
    MalformedCauseName,
    SchemaMismatch,
    UNDEFINED_RATE,
    is_undefined,
)

from .ingestion import (
    CountStatus,
    MortalityExtract,
    MortalityLoader,
    normalize_mortality,
)

from .population import (
    load_population,
    bin_population,
    reference_distribution,
)

from .rates import (
    AgeBand,
    compute_crude_rates,
    standardize,
    national_rates,
)

from .reporting import (
    to_long,
    to_wide_by_year,
    restrict_causes,
    RateWorkbook,
    TableWriter,
)

from .pipeline import (
    PipelineResult,
    RatePipeline,
    run_pipeline,
)

__all__ = [
    # Age groups
    "AgeGroup",
    "standard_age_groups",
    "collapse_label",

    # Causes
    "Cause",
    "extract_cause_label",
    "extract_cause_labels",
    "extract_year",
    "map_cause_labels",

    # Configuration
    "PipelineConfig",
    "MortalitySourceColumns",
    "PopulationSourceColumns",

    # Errors
    "MortalityRatesError",
    "SourceReadError",
    "MalformedCauseName",
    "SchemaMismatch",
    "UNDEFINED_RATE",
    "is_undefined",

    # Mortality
    "CountStatus",
    "MortalityExtract",
    "MortalityLoader",
    "normalize_mortality",

    # Population
    "load_population",
    "bin_population",
    "reference_distribution",

    # Rates
    "AgeBand",
    "compute_crude_rates",
    "standardize",
    "national_rates",

    # Export
    "to_long",
    "to_wide_by_year",
    "restrict_causes",
    "RateWorkbook",
    "TableWriter",

    # Pipeline
    "PipelineResult",
    "RatePipeline",
    "run_pipeline",
]
