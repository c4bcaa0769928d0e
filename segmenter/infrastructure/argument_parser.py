"""
Command line argument parsing and validation for segmenter.
"""

import argparse
import os
from typing import List, Optional, Tuple, Union

from segmenter.domain.models import BinarizeConfig, CompareConfig, LearnModelConfig, RunOptions
from segmenter.infrastructure.chromhmm_runner import DEFAULT_TIMEOUT, JAR_ENV_VAR
from segmenter.infrastructure.logger import Logger

Config = Union[LearnModelConfig, BinarizeConfig, CompareConfig]


class ArgumentParser:
    """Command line argument parsing and validation"""

    def __init__(self):
        self.logger = Logger()
        self.parser = self._create_parser()

    def _add_run_options(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "--jar",
            type=str,
            default=None,
            help=f"Path to ChromHMM.jar (default: ${JAR_ENV_VAR})",
        )
        parser.add_argument("--java", type=str, default="java", help="Java executable (default: java)")
        parser.add_argument(
            "--memory", type=str, default="4000M", help="Maximum Java heap size (default: 4000M)"
        )
        parser.add_argument(
            "--timeout",
            type=float,
            default=DEFAULT_TIMEOUT,
            help=f"Seconds before ChromHMM is killed (default: {DEFAULT_TIMEOUT})",
        )
        parser.add_argument(
            "--report_dir",
            type=str,
            default=None,
            help="Directory for tables and plots (default: <outputdir>/segmenter)",
        )
        parser.add_argument("--no_plots", action="store_true", help="Skip plot generation")
        parser.add_argument("--log_file", type=str, default=None, help="Also log to this file")

    def _add_model_arguments(self, parser: argparse.ArgumentParser, read_only: bool) -> None:
        parser.add_argument(
            "-o", "--outputdir", type=str, required=True, help="ChromHMM output directory"
        )
        parser.add_argument(
            "-n", "--numstates", type=int, required=True, help="Number of chromatin states"
        )
        parser.add_argument(
            "-i",
            "--inputdir",
            type=str,
            required=not read_only,
            default="",
            help="Directory of binarized input files",
        )
        parser.add_argument(
            "-a", "--assembly", type=str, required=not read_only, default="", help="Genome assembly, e.g. hg19"
        )
        parser.add_argument(
            "--cells",
            type=str,
            help="Comma-separated cell names (default: every cell with a segments file)",
        )
        parser.add_argument(
            "--annotation",
            type=str,
            default="RefSeq",
            help="Annotation prefix of TSS/TES anchor files (default: RefSeq)",
        )
        parser.add_argument(
            "--load_bins",
            action="store_true",
            help="Also load the binarized files from the input directory",
        )

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create and configure the argument parser"""
        parser = argparse.ArgumentParser(
            description="Learn, load and compare ChromHMM chromatin state models"
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        learn = subparsers.add_parser("learn", help="Run ChromHMM LearnModel and summarize")
        self._add_model_arguments(learn, read_only=False)
        learn.add_argument("-c", "--coordsdir", type=str, help="Directory of genomic coordinate files")
        learn.add_argument("-x", "--anchorsdir", type=str, help="Directory of TSS/TES anchor files")
        learn.add_argument("-l", "--chromsizefile", type=str, help="Chromosome length file")
        learn.add_argument("-b", "--binsize", type=int, default=200, help="Bin size in bp (default: 200)")
        learn.add_argument("-p", "--processors", type=int, help="Maximum number of processors")
        learn.add_argument("-r", "--max_iterations", type=int, help="Maximum EM iterations")
        learn.add_argument("-s", "--seed", type=int, help="Random seed")
        self._add_run_options(learn)

        load = subparsers.add_parser("load", help="Summarize an existing ChromHMM output directory")
        self._add_model_arguments(load, read_only=True)
        self._add_run_options(load)

        binarize = subparsers.add_parser("binarize", help="Run ChromHMM BinarizeBam or BinarizeBed")
        binarize.add_argument("-k", "--kind", choices=["bam", "bed"], default="bam", help="Input file kind")
        binarize.add_argument("-i", "--inputdir", type=str, required=True, help="Directory of BAM/BED files")
        binarize.add_argument(
            "-t", "--cellmarkfiletable", type=str, required=True, help="Cell, mark and file table"
        )
        binarize.add_argument(
            "-o", "--outputdir", type=str, required=True, help="Directory for binarized files"
        )
        binarize.add_argument(
            "-l", "--chromsizefile", type=str, required=True, help="Chromosome length file"
        )
        binarize.add_argument("-b", "--binsize", type=int, default=200, help="Bin size in bp (default: 200)")
        binarize.add_argument("-c", "--controldir", type=str, help="Directory of control files")
        self._add_run_options(binarize)

        compare = subparsers.add_parser("compare", help="Compare models by emission correlation or likelihood")
        compare.add_argument(
            "-d",
            "--outputdirs",
            type=str,
            nargs="+",
            required=True,
            help="ChromHMM output directories (one, or one per state count)",
        )
        compare.add_argument(
            "-n", "--numstates", type=int, nargs="+", required=True, help="State counts of the models"
        )
        compare.add_argument(
            "--type",
            choices=["correlation", "likelihood"],
            default="correlation",
            help="Comparison type (default: correlation)",
        )
        compare.add_argument("--cells", type=str, help="Comma-separated cell names")
        compare.add_argument("--annotation", type=str, default="RefSeq", help="Annotation prefix")
        self._add_run_options(compare)

        return parser

    def parse_arguments(self, argv: Optional[List[str]] = None) -> Tuple[str, Config, RunOptions]:
        """Parse command line arguments into a command name, its configuration and run options"""
        args = self.parser.parse_args(argv)
        cells = self._parse_cells(getattr(args, "cells", None))

        options = RunOptions(
            jar_path=args.jar,
            java=args.java,
            memory=args.memory,
            timeout=args.timeout,
            report_dir=args.report_dir,
            plots=not args.no_plots,
            log_file=args.log_file,
        )

        if args.command in ("learn", "load"):
            config = LearnModelConfig(
                inputdir=args.inputdir,
                outputdir=args.outputdir,
                numstates=args.numstates,
                assembly=args.assembly,
                coordsdir=getattr(args, "coordsdir", None),
                anchorsdir=getattr(args, "anchorsdir", None),
                chromsizefile=getattr(args, "chromsizefile", None),
                cells=cells,
                annotation=args.annotation,
                binsize=getattr(args, "binsize", 200),
                processors=getattr(args, "processors", None),
                max_iterations=getattr(args, "max_iterations", None),
                seed=getattr(args, "seed", None),
                read_only=args.command == "load",
                load_bins=args.load_bins,
            )
        elif args.command == "binarize":
            config = BinarizeConfig(
                inputdir=args.inputdir,
                cellmarkfiletable=args.cellmarkfiletable,
                outputdir=args.outputdir,
                chromsizefile=args.chromsizefile,
                kind=args.kind,
                binsize=args.binsize,
                controldir=args.controldir,
            )
        else:
            config = CompareConfig(
                outputdirs=args.outputdirs,
                numstates=args.numstates,
                type=args.type,
                cells=cells,
                annotation=args.annotation,
            )

        if not self.validate_config(config, options):
            raise ValueError("Invalid configuration")

        return args.command, config, options

    def _parse_cells(self, cells_input: Union[str, List[str], None]) -> List[str]:
        """Parse cell names from a comma-separated string or list"""
        if cells_input is None:
            return []

        if isinstance(cells_input, str):
            cells_input = cells_input.strip('"').strip("'")
            cells = [cell.strip().strip('"').strip("'") for cell in cells_input.split(",")]
        else:
            cells = [cell.strip().strip('"').strip("'") for cell in cells_input]

        return [cell for cell in cells if cell]

    def validate_config(self, config: Config, options: RunOptions) -> bool:
        """Validate a configuration, logging every problem found"""
        problems = []

        if isinstance(config, LearnModelConfig):
            if config.numstates < 1:
                problems.append(f"Number of states must be positive, got {config.numstates}")
            if config.read_only:
                if not os.path.isdir(config.outputdir):
                    problems.append(f"Output directory not found: {config.outputdir}")
                if config.load_bins and not os.path.isdir(config.inputdir):
                    problems.append(f"--load_bins needs an input directory, got '{config.inputdir}'")
            else:
                if not os.path.isdir(config.inputdir):
                    problems.append(f"Input directory not found: {config.inputdir}")
                for label, path in (
                    ("Coordinate directory", config.coordsdir),
                    ("Anchor directory", config.anchorsdir),
                ):
                    if path is not None and not os.path.isdir(path):
                        problems.append(f"{label} not found: {path}")
                if config.chromsizefile is not None and not os.path.isfile(config.chromsizefile):
                    problems.append(f"Chromosome size file not found: {config.chromsizefile}")
                if config.binsize < 1:
                    problems.append(f"Bin size must be positive, got {config.binsize}")
                if config.numstates > 50:
                    self.logger.log_warning(f"{config.numstates} states is unusually many")

        elif isinstance(config, BinarizeConfig):
            if not os.path.isdir(config.inputdir):
                problems.append(f"Input directory not found: {config.inputdir}")
            for path in (config.cellmarkfiletable, config.chromsizefile):
                if not os.path.isfile(path):
                    problems.append(f"File not found: {path}")
            if config.controldir is not None and not os.path.isdir(config.controldir):
                problems.append(f"Control directory not found: {config.controldir}")
            if config.binsize < 1:
                problems.append(f"Bin size must be positive, got {config.binsize}")

        else:
            for path in config.outputdirs:
                if not os.path.isdir(path):
                    problems.append(f"Output directory not found: {path}")
            if len(config.outputdirs) not in (1, len(config.numstates)):
                problems.append(
                    f"Give one output directory or one per state count, "
                    f"got {len(config.outputdirs)} for {len(config.numstates)}"
                )

        needs_jar = (
            isinstance(config, BinarizeConfig)
            or (isinstance(config, LearnModelConfig) and not config.read_only)
        )
        if needs_jar and not (options.jar_path or os.environ.get(JAR_ENV_VAR)):
            problems.append(f"ChromHMM jar not given; use --jar or set {JAR_ENV_VAR}")

        for problem in problems:
            self.logger.log_error(ValueError(problem), "Configuration validation")
        if problems:
            return False

        self.logger.log_success("Configuration validation passed")
        return True
