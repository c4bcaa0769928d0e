"""
Loading and structural validation of ChromHMM output files.
"""

import os
import re
from glob import glob
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from segmenter.domain.exceptions import ParseError
from segmenter.domain.models import LearnModelConfig, ModelParameters, Segmentation
from segmenter.infrastructure.logger import Logger

STATE_LABEL = re.compile(r"^[A-Za-z]*(\d+)$")
SEGMENT_COLUMNS = ["chrom", "start", "end", "state"]
ROW_SUM_TOLERANCE = 1e-6


class ChromHMMOutputLoader:
    """Responsible for parsing a ChromHMM output directory into a Segmentation"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    # ------------------------------------------------------------------ #
    # Individual files
    # ------------------------------------------------------------------ #

    def read_model_file(self, file_path: str) -> ModelParameters:
        """
        Parse a ChromHMM model_{N}.txt file.

        The first line holds the number of states, the number of marks, the
        emission-order flag, the log-likelihood and the number of iterations.
        The remaining lines are probinit, transitionprobs and emissionprobs
        records.

        Args:
            file_path: Path to the model file

        Returns:
            ModelParameters: Parsed model parameters

        Raises:
            ParseError: If the file is missing or malformed
        """
        lines = self._read_lines(file_path)
        if not lines:
            raise ParseError(file_path, "empty model file")

        header = lines[0].split("\t")
        if len(header) < 5:
            raise ParseError(file_path, "expected 5 header fields", line=1)
        numstates = self._to_int(header[0], file_path, 1)
        nummarks = self._to_int(header[1], file_path, 1)
        likelihood = self._to_float(header[3], file_path, 1)
        iterations = self._to_int(header[4], file_path, 1)
        if numstates < 1 or nummarks < 1:
            raise ParseError(file_path, "number of states and marks must be positive", line=1)

        initial = np.zeros(numstates)
        transition = np.zeros((numstates, numstates))
        emission = np.zeros((numstates, nummarks))
        markers: List[Optional[str]] = [None] * nummarks

        for line_no, line in enumerate(lines[1:], start=2):
            if not line.strip():
                continue
            fields = line.split("\t")
            kind = fields[0]
            if kind == "probinit":
                self._expect_fields(fields, 3, file_path, line_no)
                state = self._state_index(fields[1], numstates, file_path, line_no)
                initial[state] = self._to_float(fields[2], file_path, line_no)
            elif kind == "transitionprobs":
                self._expect_fields(fields, 4, file_path, line_no)
                source = self._state_index(fields[1], numstates, file_path, line_no)
                target = self._state_index(fields[2], numstates, file_path, line_no)
                transition[source, target] = self._to_float(fields[3], file_path, line_no)
            elif kind == "emissionprobs":
                self._expect_fields(fields, 6, file_path, line_no)
                state = self._state_index(fields[1], numstates, file_path, line_no)
                mark = self._to_int(fields[2], file_path, line_no)
                if not 0 <= mark < nummarks:
                    raise ParseError(
                        file_path, f"mark index {mark} outside 0..{nummarks - 1}", line=line_no
                    )
                markers[mark] = fields[3]
                # Only the probability of the mark being present is kept
                if fields[4] == "1":
                    emission[state, mark] = self._to_float(fields[5], file_path, line_no)
            else:
                raise ParseError(file_path, f"unknown record type '{kind}'", line=line_no)

        missing = [i for i, name in enumerate(markers) if name is None]
        if missing:
            raise ParseError(file_path, f"no emission records for mark indices {missing}")

        states = pd.Index(range(1, numstates + 1), name="state")
        self.logger.log_load(file_path)
        return ModelParameters(
            numstates=numstates,
            nummarks=nummarks,
            markers=list(markers),
            likelihood=likelihood,
            iterations=iterations,
            initial=pd.Series(initial, index=states, name="probinit"),
            emission=pd.DataFrame(emission, index=states, columns=list(markers)),
            transition=pd.DataFrame(transition, index=states, columns=list(states)),
        )

    def read_emissions(self, file_path: str, numstates: Optional[int] = None) -> pd.DataFrame:
        """
        Parse an emissions_{N}.txt file into a states x marks table.

        Raises:
            ParseError: On missing file, wrong state count or values outside [0, 1]
        """
        df = self._read_state_table(file_path, numstates)
        bad = (df < 0) | (df > 1)
        if bad.to_numpy().any():
            state = df.index[bad.any(axis=1)][0]
            raise ParseError(
                file_path,
                "emission probabilities must lie in [0, 1]",
                line=self._state_line(df, state),
            )
        self.logger.log_matrix_shape("Emission matrix", df.shape)
        return df

    def read_transitions(self, file_path: str, numstates: Optional[int] = None) -> pd.DataFrame:
        """
        Parse a transitions_{N}.txt file into a states x states table.

        Raises:
            ParseError: On missing file, non-square table or rows not summing to 1
        """
        df = self._read_state_table(file_path, numstates)
        df.columns = [self._parse_state(str(c), file_path, 1) for c in df.columns]
        if list(df.columns) != list(df.index):
            raise ParseError(
                file_path,
                f"transition matrix is not square over states: rows {list(df.index)}, "
                f"columns {list(df.columns)}",
                line=1,
            )
        row_sums = df.sum(axis=1)
        off = row_sums[(row_sums - 1.0).abs() > ROW_SUM_TOLERANCE]
        if not off.empty:
            raise ParseError(
                file_path,
                f"transition row for state {off.index[0]} sums to {off.iloc[0]:.8f}, not 1",
                line=self._state_line(df, off.index[0]),
            )
        self.logger.log_matrix_shape("Transition matrix", df.shape)
        return df

    def read_overlap(self, file_path: str, numstates: Optional[int] = None) -> pd.DataFrame:
        """
        Parse a {cell}_{N}_overlap.txt file.

        The trailing 'Base' row with genome-wide percentages is dropped; the
        remaining rows are per-state fold enrichments.
        """
        df = self._read_state_table(file_path, numstates, drop_labels=("Base",))
        self._check_non_negative(df, file_path)
        return df

    def read_enrichment(self, file_path: str, numstates: Optional[int] = None) -> pd.DataFrame:
        """Parse a TSS or TES neighborhood enrichment file"""
        df = self._read_state_table(file_path, numstates)
        self._check_non_negative(df, file_path)
        return df

    def read_segments(self, file_path: str, numstates: Optional[int] = None) -> pd.DataFrame:
        """
        Parse a {cell}_{N}_segments.bed file.

        Returns:
            pd.DataFrame: Columns chrom, start, end and integer state

        Raises:
            ParseError: On malformed coordinates or state labels outside 1..numstates
        """
        self._require_file(file_path)
        try:
            df = pd.read_csv(
                file_path,
                sep="\t",
                header=None,
                usecols=range(4),
                names=SEGMENT_COLUMNS,
                dtype=str,
                keep_default_na=False,
            )
        except pd.errors.EmptyDataError:
            self.logger.log_warning(f"No segments in {file_path}")
            return pd.DataFrame({
                "chrom": pd.Series(dtype=str),
                "start": pd.Series(dtype=np.int64),
                "end": pd.Series(dtype=np.int64),
                "state": pd.Series(dtype=np.int64),
            })
        except (ValueError, pd.errors.ParserError) as e:
            raise ParseError(file_path, f"expected 4 tab-separated columns ({e})")

        # Browser header lines can precede the records
        header_rows = df["chrom"].str.startswith(("track", "browser", "#"))
        df = df.loc[~header_rows].copy()

        for column in ("start", "end"):
            values = pd.to_numeric(df[column], errors="coerce")
            invalid = values.isna() | (values < 0) | (values != values.round())
            if invalid.any():
                row = invalid.idxmax()
                raise ParseError(
                    file_path,
                    f"invalid {column} coordinate '{df.at[row, column]}'",
                    line=row + 1,
                )
            df[column] = values.astype(np.int64)

        inverted = df["start"] >= df["end"]
        if inverted.any():
            row = inverted.idxmax()
            raise ParseError(file_path, "segment start must be less than end", line=row + 1)

        states = []
        for row, label in df["state"].items():
            state = self._parse_state(str(label), file_path, row + 1)
            if numstates is not None and not 1 <= state <= numstates:
                raise ParseError(
                    file_path, f"state '{label}' outside 1..{numstates}", line=row + 1
                )
            states.append(state)
        df["state"] = np.array(states, dtype=np.int64)

        df = df.reset_index(drop=True)
        self.logger.log_step("Segments loaded", f"{len(df)} segments from {file_path}")
        return df

    def read_binarized(self, file_path: str) -> Tuple[str, str, pd.DataFrame]:
        """
        Parse a binarized input file ({cell}_{chrom}_binary.txt).

        The first line names the cell and chromosome, the second the marks;
        every further line is one bin.

        Returns:
            Tuple[str, str, pd.DataFrame]: Cell, chromosome and bins x marks table
        """
        self._require_file(file_path)
        try:
            first = pd.read_csv(file_path, sep="\t", header=None, nrows=1, dtype=str)
            bins = pd.read_csv(file_path, sep="\t", skiprows=1)
        except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ParseError(file_path, f"malformed binarized file ({e})")
        if first.shape[1] < 2:
            raise ParseError(file_path, "first line must hold cell and chromosome", line=1)
        cell, chrom = str(first.iat[0, 0]), str(first.iat[0, 1])

        values = bins.apply(pd.to_numeric, errors="coerce")
        if values.isna().to_numpy().any():
            row = values.isna().any(axis=1).idxmax()
            raise ParseError(file_path, "binarized values must be integers", line=row + 3)
        return cell, chrom, values.astype(np.int64)

    # ------------------------------------------------------------------ #
    # Whole output directory
    # ------------------------------------------------------------------ #

    def discover_cells(self, outputdir: str, numstates: int) -> List[str]:
        """Find cell names from the segment files present in an output directory"""
        suffix = f"_{numstates}_segments.bed"
        files = sorted(glob(os.path.join(outputdir, f"*{suffix}")))
        cells = [os.path.basename(f)[: -len(suffix)] for f in files]
        self.logger.log_step("Cell discovery", f"Found {len(cells)} cells: {cells}")
        return cells

    def load(
        self,
        outputdir: str,
        numstates: int,
        cells: Optional[List[str]] = None,
        annotation: str = "RefSeq",
        inputdir: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Segmentation:
        """
        Load a ChromHMM output directory.

        Args:
            outputdir: Directory written by ChromHMM LearnModel
            numstates: Number of states the model was learned with
            cells: Cell names; discovered from segment files when empty
            annotation: Annotation prefix of the TSS/TES neighborhood files
            inputdir: Optional directory of binarized input files
            name: Optional display name for the model

        Returns:
            Segmentation: The loaded model

        Raises:
            ParseError: If a mandatory file is missing or any file is malformed
        """
        self.logger.log_step("Loading", f"ChromHMM output in {outputdir} ({numstates} states)")
        try:
            model = self.read_model_file(os.path.join(outputdir, f"model_{numstates}.txt"))
            if model.numstates != numstates:
                raise ParseError(
                    os.path.join(outputdir, f"model_{numstates}.txt"),
                    f"model declares {model.numstates} states, expected {numstates}",
                    line=1,
                )

            emission_file = os.path.join(outputdir, f"emissions_{numstates}.txt")
            emissions = self.read_emissions(emission_file, numstates)
            if emissions.shape[1] != model.nummarks:
                raise ParseError(
                    emission_file,
                    f"{emissions.shape[1]} mark columns but model declares {model.nummarks}",
                    line=1,
                )
            transitions = self.read_transitions(
                os.path.join(outputdir, f"transitions_{numstates}.txt"), numstates
            )

            if not cells:
                cells = self.discover_cells(outputdir, numstates)
            if not cells:
                raise ParseError(outputdir, f"no *_{numstates}_segments.bed files found")

            segments: Dict[str, pd.DataFrame] = {}
            overlaps: Dict[str, pd.DataFrame] = {}
            tss: Dict[str, pd.DataFrame] = {}
            tes: Dict[str, pd.DataFrame] = {}
            for cell in cells:
                prefix = os.path.join(outputdir, f"{cell}_{numstates}")
                segments[cell] = self.read_segments(f"{prefix}_segments.bed", numstates)
                self._load_optional(
                    overlaps, cell, f"{prefix}_overlap.txt", self.read_overlap, numstates
                )
                self._load_optional(
                    tss,
                    cell,
                    f"{prefix}_{annotation}TSS_neighborhood.txt",
                    self.read_enrichment,
                    numstates,
                )
                self._load_optional(
                    tes,
                    cell,
                    f"{prefix}_{annotation}TES_neighborhood.txt",
                    self.read_enrichment,
                    numstates,
                )

            binarized = self.load_binarized(inputdir, cells) if inputdir else {}
        except ParseError as e:
            self.logger.log_error(e, "Loading ChromHMM output")
            raise

        name = name or f"model_{numstates}"
        self.logger.log_model(name, model.numstates, model.nummarks, model.likelihood)
        self.logger.log_success(f"Loaded {numstates}-state model for {len(cells)} cells")
        return Segmentation(
            model=model,
            cells=list(cells),
            emissions=emissions,
            transitions=transitions,
            segments=segments,
            overlaps=overlaps,
            tss_enrichment=tss,
            tes_enrichment=tes,
            binarized=binarized,
            name=name,
            output_dir=outputdir,
        )

    def load_from_config(self, config: LearnModelConfig, name: Optional[str] = None) -> Segmentation:
        """
        Load the output directory described by a LearnModel configuration.

        Binarized input files are only read when config.load_bins is set.
        """
        return self.load(
            config.outputdir,
            config.numstates,
            cells=config.cells,
            annotation=config.annotation,
            inputdir=config.inputdir if config.load_bins else None,
            name=name,
        )

    def load_binarized(
        self, inputdir: str, cells: Optional[List[str]] = None
    ) -> Dict[str, Dict[str, pd.DataFrame]]:
        """Load every binarized file in a directory, keyed by cell then chromosome"""
        binarized: Dict[str, Dict[str, pd.DataFrame]] = {}
        for file_path in sorted(glob(os.path.join(inputdir, "*_binary.txt*"))):
            cell, chrom, bins = self.read_binarized(file_path)
            if cells and cell not in cells:
                continue
            binarized.setdefault(cell, {})[chrom] = bins
        self.logger.log_step(
            "Binarized data", f"Loaded {sum(len(v) for v in binarized.values())} files"
        )
        return binarized

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _load_optional(self, tables, cell, file_path, reader, numstates) -> None:
        if not os.path.exists(file_path):
            self.logger.log_warning(f"Enrichment file not found, skipping: {file_path}")
            return
        tables[cell] = reader(file_path, numstates)

    def _read_state_table(
        self, file_path: str, numstates: Optional[int], drop_labels: Tuple[str, ...] = ()
    ) -> pd.DataFrame:
        """Read a tab-separated table whose first column holds state labels"""
        self._require_file(file_path)
        try:
            raw = pd.read_csv(file_path, sep="\t", dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise ParseError(file_path, f"malformed table ({e})")

        # A trailing tab produces an empty unnamed column
        empty = [c for c in raw.columns if str(c).startswith("Unnamed") and (raw[c] == "").all()]
        raw = raw.drop(columns=empty)
        if raw.shape[1] < 2:
            raise ParseError(file_path, "expected a state column and at least one value column", line=1)

        labels = raw.iloc[:, 0].str.strip()
        raw = raw.loc[~labels.isin(drop_labels)]
        labels = labels.loc[raw.index]

        index = [self._parse_state(label, file_path, row + 2) for row, label in labels.items()]
        values = raw.iloc[:, 1:].apply(pd.to_numeric, errors="coerce")
        if values.isna().to_numpy().any():
            row = values.isna().any(axis=1).idxmax()
            raise ParseError(file_path, "non-numeric value", line=row + 2)

        df = pd.DataFrame(
            values.to_numpy(dtype=np.float64),
            index=pd.Index(index, name="state"),
            columns=list(raw.columns[1:]),
        )
        if numstates is not None and sorted(index) != list(range(1, numstates + 1)):
            raise ParseError(
                file_path, f"found {len(index)} state rows {index}, expected states 1..{numstates}"
            )
        return df.sort_index()

    def _check_non_negative(self, df: pd.DataFrame, file_path: str) -> None:
        negative = (df < 0).any(axis=1)
        if negative.any():
            raise ParseError(
                file_path,
                "enrichment values must be non-negative",
                line=self._state_line(df, negative.idxmax()),
            )

    def _require_file(self, file_path: str) -> None:
        if not os.path.isfile(file_path):
            raise ParseError(file_path, "file not found")

    def _read_lines(self, file_path: str) -> List[str]:
        self._require_file(file_path)
        with open(file_path) as handle:
            return [line.rstrip("\r\n") for line in handle]

    @staticmethod
    def _state_line(df: pd.DataFrame, state: int) -> int:
        # States are written in order after a single header line
        return list(df.index).index(state) + 2

    @staticmethod
    def _parse_state(label: str, file_path: str, line: int) -> int:
        match = STATE_LABEL.match(label.strip())
        if not match:
            raise ParseError(file_path, f"invalid state label '{label}'", line=line)
        return int(match.group(1))

    @staticmethod
    def _expect_fields(fields: List[str], count: int, file_path: str, line: int) -> None:
        if len(fields) < count:
            raise ParseError(file_path, f"expected {count} fields, found {len(fields)}", line=line)

    def _state_index(self, value: str, numstates: int, file_path: str, line: int) -> int:
        state = self._to_int(value, file_path, line)
        if not 1 <= state <= numstates:
            raise ParseError(file_path, f"state {state} outside 1..{numstates}", line=line)
        return state - 1

    @staticmethod
    def _to_int(value: str, file_path: str, line: int) -> int:
        try:
            return int(value)
        except ValueError:
            raise ParseError(file_path, f"expected an integer, found '{value}'", line=line)

    @staticmethod
    def _to_float(value: str, file_path: str, line: int) -> float:
        try:
            return float(value)
        except ValueError:
            raise ParseError(file_path, f"expected a number, found '{value}'", line=line)
