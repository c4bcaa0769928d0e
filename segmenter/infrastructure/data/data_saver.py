"""
Writing of segmentation tables and derived summaries.
"""

import os
from typing import Optional

import pandas as pd

from segmenter.domain.models import ComparisonResult
from segmenter.infrastructure.logger import Logger

EMISSION_HEADER = "State (Emission order)"
TRANSITION_HEADER = "State (from\\to) (Emission order)"


class SegmentationWriter:
    """Responsible for saving tables in ChromHMM's layout or as plain TSV"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    def _write_state_table(self, df: pd.DataFrame, header: str, file_path: str) -> None:
        """Write a state-indexed table with ChromHMM's header convention"""
        try:
            directory = os.path.dirname(file_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

            out = df.copy()
            out.index = [str(state) for state in out.index]
            out.index.name = header
            out.columns = [str(c) for c in out.columns]
            out.to_csv(file_path, sep="\t", lineterminator="\n")

            self.logger.log_save(file_path)
        except Exception as e:
            self.logger.log_error(e, f"Saving table to {file_path}")
            raise

    def write_emissions(self, emission: pd.DataFrame, file_path: str) -> None:
        """Write an emission matrix as an emissions_{N}.txt file"""
        self._write_state_table(emission, EMISSION_HEADER, file_path)

    def write_transitions(self, transition: pd.DataFrame, file_path: str) -> None:
        """Write a transition matrix as a transitions_{N}.txt file"""
        self._write_state_table(transition, TRANSITION_HEADER, file_path)

    def write_segments(self, segments: pd.DataFrame, file_path: str, prefix: str = "E") -> None:
        """Write segments as a four-column BED file with E-prefixed state labels"""
        try:
            out = segments[["chrom", "start", "end"]].copy()
            out["state"] = [f"{prefix}{state}" for state in segments["state"]]
            out.to_csv(file_path, sep="\t", header=False, index=False, lineterminator="\n")
            self.logger.log_save(file_path)
        except Exception as e:
            self.logger.log_error(e, f"Saving segments to {file_path}")
            raise

    def write_table(self, df: pd.DataFrame, file_path: str) -> None:
        """Write any state-indexed table as TSV"""
        try:
            df.to_csv(file_path, sep="\t", float_format="%.8f")
            self.logger.log_save(file_path)
        except Exception as e:
            self.logger.log_error(e, f"Saving table to {file_path}")
            raise

    def write_frequency(self, frequency: pd.DataFrame, file_path: str) -> None:
        """Write a frequency table (tidy or wide) as TSV"""
        try:
            wide = "cell" not in frequency.columns
            frequency.to_csv(file_path, sep="\t", index=wide, float_format="%.8f")
            self.logger.log_save(file_path)
        except Exception as e:
            self.logger.log_error(e, f"Saving frequency table to {file_path}")
            raise

    def write_comparison(self, result: ComparisonResult, out_dir: str, prefix: str = "comparison") -> None:
        """Write comparison scores and, for correlation mode, the best match of every state"""
        try:
            os.makedirs(out_dir, exist_ok=True)
            scores_file = os.path.join(out_dir, f"{prefix}_{result.type}_scores.tsv")
            result.scores.to_csv(scores_file, sep="\t", header=True)
            self.logger.log_save(scores_file)

            if result.per_state is not None:
                per_state_file = os.path.join(out_dir, f"{prefix}_{result.type}_per_state.tsv")
                result.per_state.to_csv(per_state_file, sep="\t", index=False, float_format="%.8f")
                self.logger.log_save(per_state_file)
        except Exception as e:
            self.logger.log_error(e, f"Saving comparison to {out_dir}")
            raise
