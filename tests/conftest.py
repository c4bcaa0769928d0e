"""
Test configuration and fixtures for segmenter tests

Fixtures write a small synthetic ChromHMM output directory (3 states,
5 marks, 2 cells) in the exact layout ChromHMM produces.
"""

import stat
import sys
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from segmenter.domain.models import ModelParameters, Segmentation
from segmenter.infrastructure.data.data_loader import ChromHMMOutputLoader

MARKS = ["H3K4me3", "H3K27ac", "H3K4me1", "H3K36me3", "H3K27me3"]

EMISSION = [
    [0.95, 0.80, 0.40, 0.05, 0.02],
    [0.10, 0.30, 0.70, 0.60, 0.05],
    [0.01, 0.02, 0.03, 0.10, 0.90],
]

TRANSITION = [
    [0.90, 0.06, 0.04],
    [0.05, 0.90, 0.05],
    [0.02, 0.08, 0.90],
]

INITIAL = [0.3, 0.3, 0.4]
LIKELIHOOD = -12345.678
ITERATIONS = 200

SEGMENTS = {
    "K562": [
        ("chr1", 0, 1000, "E1"),
        ("chr1", 1000, 2400, "E2"),
        ("chr1", 2400, 3000, "E1"),
        ("chr1", 3000, 5000, "E3"),
    ],
    "GM12878": [
        ("chr1", 0, 2000, "E2"),
        ("chr1", 2000, 5000, "E1"),
        ("chr2", 0, 800, "E2"),
    ],
}

OVERLAP_HEADER = ["Genome %", "CpGIsland.hg19.bed.gz", "RefSeqExon.hg19.bed.gz"]
OVERLAP = [
    [1.5, 20.1, 4.2],
    [30.2, 1.1, 2.3],
    [68.3, 0.2, 0.4],
]
OVERLAP_BASE = [100.0, 0.7, 1.2]

OFFSETS = ["-400", "-200", "0", "200", "400"]
TSS = [
    [5.0, 12.0, 30.0, 11.0, 4.0],
    [1.0, 1.5, 2.0, 1.4, 1.1],
    [0.2, 0.1, 0.05, 0.1, 0.3],
]
TES = [
    [1.0, 1.1, 1.3, 1.0, 0.9],
    [2.0, 2.5, 3.0, 2.2, 1.9],
    [0.5, 0.4, 0.3, 0.4, 0.5],
]


def _write_state_table(path, header, rows):
    with open(path, "w") as handle:
        handle.write("\t".join(header) + "\n")
        for state, row in enumerate(rows, start=1):
            handle.write("\t".join([str(state)] + [repr(float(v)) for v in row]) + "\n")


def write_chromhmm_output(
    outdir,
    emission=EMISSION,
    transition=TRANSITION,
    marks=MARKS,
    segments=SEGMENTS,
    likelihood=LIKELIHOOD,
    enrichment=True,
    annotation="RefSeq",
):
    """Write a ChromHMM-style output directory and return its path"""
    outdir = Path(outdir)
    outdir.mkdir(parents=True, exist_ok=True)
    numstates = len(emission)
    initial = [1.0 / numstates] * numstates if numstates != 3 else INITIAL

    with open(outdir / f"model_{numstates}.txt", "w") as handle:
        handle.write(f"{numstates}\t{len(marks)}\tE\t{likelihood}\t{ITERATIONS}\n")
        for state, p in enumerate(initial, start=1):
            handle.write(f"probinit\t{state}\t{p}\n")
        for source, row in enumerate(transition, start=1):
            for target, p in enumerate(row, start=1):
                handle.write(f"transitionprobs\t{source}\t{target}\t{p}\n")
        for state, row in enumerate(emission, start=1):
            for mark_index, (mark, p) in enumerate(zip(marks, row)):
                handle.write(f"emissionprobs\t{state}\t{mark_index}\t{mark}\t0\t{1 - p}\n")
                handle.write(f"emissionprobs\t{state}\t{mark_index}\t{mark}\t1\t{p}\n")

    _write_state_table(
        outdir / f"emissions_{numstates}.txt", ["State (Emission order)"] + list(marks), emission
    )
    _write_state_table(
        outdir / f"transitions_{numstates}.txt",
        ["State (from\\to) (Emission order)"] + [str(s) for s in range(1, numstates + 1)],
        transition,
    )

    for cell, rows in segments.items():
        with open(outdir / f"{cell}_{numstates}_segments.bed", "w") as handle:
            for chrom, start, end, state in rows:
                handle.write(f"{chrom}\t{start}\t{end}\t{state}\n")

        if enrichment and numstates == 3:
            overlap_path = outdir / f"{cell}_{numstates}_overlap.txt"
            _write_state_table(overlap_path, ["state (Emission order)"] + OVERLAP_HEADER, OVERLAP)
            with open(overlap_path, "a") as handle:
                handle.write("\t".join(["Base"] + [str(v) for v in OVERLAP_BASE]) + "\n")
            _write_state_table(
                outdir / f"{cell}_{numstates}_{annotation}TSS_neighborhood.txt",
                ["state (Emission order)"] + OFFSETS,
                TSS,
            )
            _write_state_table(
                outdir / f"{cell}_{numstates}_{annotation}TES_neighborhood.txt",
                ["state (Emission order)"] + OFFSETS,
                TES,
            )

    return outdir


def write_binarized(inputdir, cell, chrom, marks=MARKS, rows=None):
    """Write a ChromHMM binarized input file"""
    inputdir = Path(inputdir)
    inputdir.mkdir(parents=True, exist_ok=True)
    rows = rows if rows is not None else [[1, 0, 0, 0, 0], [1, 1, 0, 0, 0], [0, 0, 0, 0, 1]]
    path = inputdir / f"{cell}_{chrom}_binary.txt"
    with open(path, "w") as handle:
        handle.write(f"{cell}\t{chrom}\n")
        handle.write("\t".join(marks) + "\n")
        for row in rows:
            handle.write("\t".join(str(v) for v in row) + "\n")
    return path


def make_segmentation(emission, marks=None, cells=("cell1",), name=None, likelihood=-100.0):
    """Build a Segmentation in memory from an emission matrix"""
    emission = np.asarray(emission, dtype=np.float64)
    numstates, nummarks = emission.shape
    marks = marks or [f"mark{i + 1}" for i in range(nummarks)]
    states = pd.Index(range(1, numstates + 1), name="state")
    emission_df = pd.DataFrame(emission, index=states, columns=marks)
    transition_df = pd.DataFrame(
        np.full((numstates, numstates), 1.0 / numstates), index=states, columns=list(states)
    )
    model = ModelParameters(
        numstates=numstates,
        nummarks=nummarks,
        markers=list(marks),
        likelihood=likelihood,
        iterations=10,
        initial=pd.Series(np.full(numstates, 1.0 / numstates), index=states),
        emission=emission_df,
        transition=transition_df,
    )
    segments = {
        cell: pd.DataFrame(
            {
                "chrom": ["chr1"] * numstates,
                "start": [i * 200 for i in range(numstates)],
                "end": [(i + 1) * 200 for i in range(numstates)],
                "state": list(range(1, numstates + 1)),
            }
        )
        for cell in cells
    }
    return Segmentation(
        model=model,
        cells=list(cells),
        emissions=emission_df,
        transitions=transition_df,
        segments=segments,
        name=name,
    )


@pytest.fixture
def model_dir(tmp_path):
    """Synthetic 3-state ChromHMM output directory"""
    return write_chromhmm_output(tmp_path / "OUTPUT")


@pytest.fixture
def loader():
    return ChromHMMOutputLoader()


@pytest.fixture
def segmentation(model_dir, loader):
    """Loaded 3-state segmentation with two cells"""
    return loader.load(str(model_dir), 3, cells=["K562", "GM12878"])


@pytest.fixture
def fake_java(tmp_path):
    """
    Factory for a stand-in java executable.

    The script records its arguments next to itself and exits with the given
    status after printing the given message to stderr.
    """

    def _make(exit_code=0, stderr="", sleep=0):
        script = tmp_path / f"fake_java_{exit_code}_{sleep}.sh"
        args_file = tmp_path / "java_args.txt"
        lines = ["#!/bin/sh", f'echo "$@" > "{args_file}"']
        if sleep:
            lines.append(f"exec sleep {sleep}")
        if stderr:
            lines.append(f'echo "{stderr}" >&2')
        lines.append(f"exit {exit_code}")
        script.write_text("\n".join(lines) + "\n")
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(script), args_file

    return _make


@pytest.fixture
def chromhmm_writer():
    """Factory writing ChromHMM output directories with custom parameters"""
    return write_chromhmm_output


@pytest.fixture
def binarized_writer():
    return write_binarized


@pytest.fixture
def segmentation_factory():
    """Factory building in-memory segmentations from emission matrices"""
    return make_segmentation
