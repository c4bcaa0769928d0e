"""
Read-only access to the enrichment tables computed by ChromHMM.
"""

from typing import Mapping, Optional, Sequence, Union

import pandas as pd

from segmenter.domain.models import Segmentation
from segmenter.infrastructure.logger import Logger

ENRICHMENT_KINDS = ("overlap", "tss", "tes")

Labels = Union[Mapping, Sequence[str]]


class EnrichmentAccessor:
    """Projects overlap, TSS and TES enrichment tables for display"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    def get(
        self,
        segmentation: Segmentation,
        kind: str = "overlap",
        cell: Optional[str] = None,
        state_labels: Optional[Labels] = None,
        column_labels: Optional[Labels] = None,
        short_names: bool = False,
    ) -> pd.DataFrame:
        """
        Return one enrichment table, optionally relabeled.

        Args:
            segmentation: Loaded model
            kind: "overlap", "tss" or "tes"
            cell: Cell name; may be omitted when only one cell was loaded
            state_labels: New row labels, as a mapping or one label per state
            column_labels: New column labels, as a mapping or one label per column
            short_names: Strip file suffixes such as '.hg19.bed.gz' from
                feature columns

        Returns:
            pd.DataFrame: A copy of the stored table
        """
        if kind not in ENRICHMENT_KINDS:
            raise ValueError(f"Unknown enrichment kind '{kind}', expected one of {ENRICHMENT_KINDS}")

        tables = {
            "overlap": segmentation.overlaps,
            "tss": segmentation.tss_enrichment,
            "tes": segmentation.tes_enrichment,
        }[kind]
        if cell is None:
            if len(tables) != 1:
                raise ValueError(
                    f"Cell must be given when {len(tables)} {kind} tables are loaded: {sorted(tables)}"
                )
            cell = next(iter(tables))

        df = getattr(segmentation, kind)(cell)

        if short_names:
            df.columns = [self._short_name(c) for c in df.columns]
        if state_labels is not None:
            df.index = self._relabel(df.index, state_labels, "state")
        if column_labels is not None:
            df.columns = self._relabel(df.columns, column_labels, "column")
        return df

    def overlap(self, segmentation: Segmentation, cell: Optional[str] = None, **kwargs) -> pd.DataFrame:
        return self.get(segmentation, "overlap", cell, **kwargs)

    def tss(self, segmentation: Segmentation, cell: Optional[str] = None, **kwargs) -> pd.DataFrame:
        return self.get(segmentation, "tss", cell, **kwargs)

    def tes(self, segmentation: Segmentation, cell: Optional[str] = None, **kwargs) -> pd.DataFrame:
        return self.get(segmentation, "tes", cell, **kwargs)

    @staticmethod
    def _short_name(column) -> str:
        # 'Genome %' and numeric offsets have no file suffix to strip
        column = str(column)
        if column.endswith((".gz", ".bed", ".txt")):
            return column.split(".")[0]
        return column

    @staticmethod
    def _relabel(current: pd.Index, labels: Labels, what: str) -> pd.Index:
        if isinstance(labels, Mapping):
            return pd.Index([labels.get(x, x) for x in current], name=current.name)
        labels = list(labels)
        if len(labels) != len(current):
            raise ValueError(f"Got {len(labels)} {what} labels for {len(current)} {what}s")
        return pd.Index(labels, name=current.name)
