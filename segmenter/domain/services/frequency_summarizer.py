"""
Genome-wide state frequency summaries over loaded segments.
"""

from typing import Dict, Optional, Union

import numpy as np
import pandas as pd

from segmenter.domain.models import Segmentation
from segmenter.infrastructure.logger import Logger


class FrequencySummarizer:
    """Tabulates how often each chromatin state occurs per cell"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    def state_frequency(
        self,
        segments: Union[Segmentation, Dict[str, pd.DataFrame]],
        normalize: bool = False,
        tidy: bool = True,
        numstates: Optional[int] = None,
    ) -> pd.DataFrame:
        """
        Count segment intervals per state for every cell.

        Intervals are counted, not base pairs: ChromHMM merges consecutive
        bins with the same state into one segment. Every state 1..numstates
        is reported for every cell, with zero where it does not occur.

        Args:
            segments: A loaded Segmentation, or cell name -> segments table
            normalize: Divide each cell's counts by that cell's total
            tidy: Return long (cell, state, frequency) rows instead of a
                cells x states table
            numstates: Number of states; required when passing raw tables

        Returns:
            pd.DataFrame: Frequency table

        Raises:
            ValueError: If the number of states is unknown or a segment
                carries a state outside 1..numstates
        """
        if isinstance(segments, Segmentation):
            numstates = segments.numstates
            frames = segments.segment()
        else:
            frames = segments
        if numstates is None or numstates < 1:
            raise ValueError("numstates must be a positive integer when passing raw segments")

        states = list(range(1, numstates + 1))
        counts = {}
        for cell, df in frames.items():
            unknown = set(df["state"].unique()) - set(states)
            if unknown:
                raise ValueError(
                    f"Cell '{cell}' has segments with states {sorted(unknown)} "
                    f"outside 1..{numstates}"
                )
            counts[cell] = (
                df["state"].value_counts().reindex(states, fill_value=0).astype(np.int64)
            )

        wide = pd.DataFrame(
            np.array([counts[cell].to_numpy() for cell in counts], dtype=np.int64).reshape(
                len(counts), numstates
            ),
            index=pd.Index(list(counts), name="cell"),
            columns=pd.Index(states, name="state"),
        )

        if normalize:
            totals = wide.sum(axis=1)
            wide = wide.div(totals.where(totals > 0), axis=0).fillna(0.0)

        self.logger.log_step(
            "State frequency",
            f"{len(wide)} cells x {numstates} states (normalized={normalize})",
        )

        if not tidy:
            return wide

        records = [
            (cell, state, wide.at[cell, state]) for cell in wide.index for state in states
        ]
        return pd.DataFrame(records, columns=["cell", "state", "frequency"])
