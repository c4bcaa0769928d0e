"""
Core domain models for the segmenter package.
Contains configuration for ChromHMM runs and the loaded segmentation model.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd


@dataclass
class LearnModelConfig:
    """Configuration for a ChromHMM LearnModel run"""

    inputdir: str
    outputdir: str
    numstates: int
    assembly: str
    coordsdir: Optional[str] = None
    anchorsdir: Optional[str] = None
    chromsizefile: Optional[str] = None
    cells: List[str] = field(default_factory=list)
    annotation: str = "RefSeq"
    binsize: int = 200
    processors: Optional[int] = None
    max_iterations: Optional[int] = None
    seed: Optional[int] = None
    read_only: bool = False
    # Also read the binarized input files into Segmentation.bins
    load_bins: bool = False


@dataclass
class BinarizeConfig:
    """Configuration for a ChromHMM BinarizeBam / BinarizeBed run"""

    inputdir: str
    cellmarkfiletable: str
    outputdir: str
    chromsizefile: str
    kind: str = "bam"
    binsize: int = 200
    controldir: Optional[str] = None


@dataclass
class CompareConfig:
    """Models to load and compare"""

    outputdirs: List[str]
    numstates: List[int]
    type: str = "correlation"
    cells: List[str] = field(default_factory=list)
    annotation: str = "RefSeq"


@dataclass
class RunOptions:
    """Execution options shared by all commands"""

    jar_path: Optional[str] = None
    java: str = "java"
    memory: str = "4000M"
    timeout: float = 6 * 60 * 60
    report_dir: Optional[str] = None
    plots: bool = True
    log_file: Optional[str] = None


@dataclass(frozen=True, eq=False)
class ModelParameters:
    """Parameters read from a ChromHMM model file"""

    numstates: int
    nummarks: int
    markers: List[str]
    likelihood: float
    iterations: int
    initial: pd.Series
    emission: pd.DataFrame
    transition: pd.DataFrame


@dataclass(frozen=True, eq=False)
class Segmentation:
    """
    A trained ChromHMM model and its per-cell results.

    Tables are indexed by state (1..numstates). Accessors hand out copies so
    the loaded object stays unchanged for its whole lifetime.
    """

    model: ModelParameters
    cells: List[str]
    emissions: pd.DataFrame
    transitions: pd.DataFrame
    segments: Dict[str, pd.DataFrame]
    overlaps: Dict[str, pd.DataFrame] = field(default_factory=dict)
    tss_enrichment: Dict[str, pd.DataFrame] = field(default_factory=dict)
    tes_enrichment: Dict[str, pd.DataFrame] = field(default_factory=dict)
    binarized: Dict[str, Dict[str, pd.DataFrame]] = field(default_factory=dict)
    name: Optional[str] = None
    output_dir: Optional[str] = None

    @property
    def numstates(self) -> int:
        return self.model.numstates

    def states(self) -> List[int]:
        return list(range(1, self.model.numstates + 1))

    def markers(self) -> List[str]:
        return list(self.model.markers)

    def likelihood(self) -> float:
        return self.model.likelihood

    def emission(self) -> pd.DataFrame:
        """Probability of observing each mark (columns) in each state (rows)"""
        return self.emissions.copy()

    def transition(self) -> pd.DataFrame:
        """State-to-state transition probabilities, rows are the source state"""
        return self.transitions.copy()

    def overlap(self, cell: Optional[str] = None):
        return self._per_cell(self.overlaps, cell, "overlap enrichment")

    def tss(self, cell: Optional[str] = None):
        return self._per_cell(self.tss_enrichment, cell, "TSS enrichment")

    def tes(self, cell: Optional[str] = None):
        return self._per_cell(self.tes_enrichment, cell, "TES enrichment")

    def segment(self, cell: Optional[str] = None):
        """Segments of one cell, or a dict of all cells when no cell is given"""
        return self._per_cell(self.segments, cell, "segments")

    def bins(self, cell: Optional[str] = None):
        """Binarized input per chromosome for one cell, or for all cells"""
        if cell is None:
            return {
                name: {chrom: df.copy() for chrom, df in chroms.items()}
                for name, chroms in self.binarized.items()
            }
        if cell not in self.binarized:
            raise KeyError(f"No binarized data loaded for cell '{cell}'")
        return {chrom: df.copy() for chrom, df in self.binarized[cell].items()}

    def _per_cell(self, tables: Dict[str, pd.DataFrame], cell: Optional[str], what: str):
        if cell is None:
            return {name: df.copy() for name, df in tables.items()}
        if cell not in tables:
            raise KeyError(
                f"No {what} loaded for cell '{cell}' (available: {sorted(tables)})"
            )
        return tables[cell].copy()


@dataclass
class ComparisonResult:
    """Result of comparing trained models"""

    type: str
    reference: str
    scores: pd.Series
    # Long (model, state, correlation) table, correlation mode only
    per_state: Optional[pd.DataFrame] = None


@dataclass
class ProcessingResult:
    """Result of running or loading a model and summarizing it"""

    segmentation: Segmentation
    frequency: pd.DataFrame
    normalized_frequency: pd.DataFrame
    written_files: List[str] = field(default_factory=list)
