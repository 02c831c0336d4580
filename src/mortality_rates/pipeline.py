"""
mortality_rates/pipeline.py - Rate Pipeline Orchestration

Runs the full batch from the two raw inputs to the output tables:

    extracts -> load -> normalize -> cause display names --+
                                                           +-> crude rates -> standardize -> export
    census   -> bin population -> reference distribution --+                -> national

Every run builds its tables from scratch inside one RatePipeline; nothing
is kept between runs.

Author: State Mortality Rates Project
License: MIT
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional
import logging
import time

import pandas as pd

from .causes import map_cause_labels
from .config import PipelineConfig
from .ingestion import MortalityExtract, MortalityLoader, normalize_mortality
from .population import bin_population, load_population, reference_distribution
from .rates import NATIONAL_KEYS, compute_crude_rates, national_rates, standardize
from .reporting import (
    TableWriter,
    build_workbook,
    restrict_causes,
    to_long,
    to_wide_by_year,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Every table produced by one run."""
    mortality: pd.DataFrame
    population: pd.DataFrame
    distribution: pd.DataFrame
    rates: pd.DataFrame
    ascdr: pd.DataFrame
    national: pd.DataFrame
    selected: pd.DataFrame
    extract: MortalityExtract
    config: PipelineConfig
    elapsed_seconds: float = 0.0
    written: List[Path] = field(default_factory=list)

    def output_tables(self) -> Dict[str, pd.DataFrame]:
        """File name -> table, as written to the output directory."""
        return {
            'mortalityData.csv': self.rates,
            'popData.csv': self.population,
            'popDistribution.csv': self.distribution,
            'ASCDRDataLong.csv': to_long(self.ascdr),
            'ASCDRData.csv': to_wide_by_year(self.ascdr),
            'ASCDRNational.csv': to_long(self.national, NATIONAL_KEYS),
            'ASCDRSelectedCauses.csv': to_wide_by_year(self.selected),
        }

    def manifest(self) -> Dict:
        """Inputs and settings that produced this run's tables."""
        return {
            'mortality_sources': self.extract.get_summary(),
            'population_rows': len(self.population),
            'rate_rows': len(self.rates),
            'ascdr_rows': len(self.ascdr),
            'config': self.config.snapshot(),
        }

    def get_summary(self) -> Dict:
        return {
            'states': int(self.mortality['state'].nunique()),
            'causes': sorted(self.mortality['cause'].unique()),
            'years': sorted(int(y) for y in self.mortality['year'].unique()),
            'reference_year': self.config.reference_year,
            'undefined_cdr': int(self.rates['CDR'].isna().sum()),
            'elapsed_seconds': round(self.elapsed_seconds, 2),
        }


class RatePipeline:
    """
    Age-standardized mortality rate pipeline.

    Usage:
        pipeline = RatePipeline(config)
        result = pipeline.run()
        pipeline.write(result)
    """

    def __init__(self, config: PipelineConfig):
        self.config = config
        self.loader = MortalityLoader(config)

    def load_mortality(self) -> MortalityExtract:
        return self.loader.load(self.config.mortality_dir)

    def prepare_mortality(self, extract: MortalityExtract) -> pd.DataFrame:
        mortality = normalize_mortality(extract.data, self.config)
        return mortality.assign(
            cause=map_cause_labels(mortality['cause'], self.config.cause_labels)
        )

    def prepare_population(self) -> pd.DataFrame:
        raw = load_population(self.config)
        return bin_population(raw, self.config)

    def run(self) -> PipelineResult:
        start = time.time()
        logger.info(f"Starting rate pipeline (reference year {self.config.reference_year})")

        extract = self.load_mortality()
        mortality = self.prepare_mortality(extract)

        population = self.prepare_population()
        distribution = reference_distribution(population, self.config.reference_year)

        rates = compute_crude_rates(mortality, population, distribution)
        ascdr = standardize(rates)
        national = national_rates(rates)
        selected = restrict_causes(ascdr, self.config.selected_causes)

        result = PipelineResult(
            mortality=mortality,
            population=population,
            distribution=distribution,
            rates=rates,
            ascdr=ascdr,
            national=national,
            selected=selected,
            extract=extract,
            config=self.config,
            elapsed_seconds=time.time() - start,
        )
        logger.info(f"Pipeline complete in {result.elapsed_seconds:.2f}s")
        return result

    def write(self, result: PipelineResult,
              output_dir: Optional[Path] = None) -> List[Path]:
        """Write every output table; nothing is written if any write fails."""
        tables = result.output_tables()
        workbook = build_workbook(tables) if self.config.write_excel else None
        writer = TableWriter(output_dir or self.config.output_dir)
        result.written = writer.write_all(
            tables,
            json_documents={'manifest.json': result.manifest()},
            workbook=workbook,
        )
        return result.written


def run_pipeline(config: PipelineConfig, write: bool = True) -> PipelineResult:
    """Run a full recomputation and, by default, write its outputs."""
    pipeline = RatePipeline(config)
    result = pipeline.run()
    if write:
        pipeline.write(result)
    return result
