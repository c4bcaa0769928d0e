"""
Invocation of the ChromHMM Java program as a blocking subprocess.
"""

import os
import subprocess
import time
from contextlib import contextmanager
from typing import Iterator, List, Optional

from segmenter.domain.exceptions import ChromHMMError
from segmenter.domain.models import BinarizeConfig, LearnModelConfig, Segmentation
from segmenter.infrastructure.data.data_loader import ChromHMMOutputLoader
from segmenter.infrastructure.logger import Logger

JAR_ENV_VAR = "CHROMHMM_JAR"
DEFAULT_TIMEOUT = 6 * 60 * 60
BINARIZE_COMMANDS = {"bam": "BinarizeBam", "bed": "BinarizeBed"}


class ChromHMMRunner:
    """Builds ChromHMM command lines, runs them and loads the results"""

    def __init__(
        self,
        jar_path: Optional[str] = None,
        java: str = "java",
        memory: str = "4000M",
        timeout: float = DEFAULT_TIMEOUT,
        logger: Optional[Logger] = None,
        loader: Optional[ChromHMMOutputLoader] = None,
    ):
        self.jar_path = jar_path or os.environ.get(JAR_ENV_VAR)
        self.java = java
        self.memory = memory
        self.timeout = timeout
        self.logger = logger if logger is not None else Logger()
        self.loader = loader if loader is not None else ChromHMMOutputLoader(self.logger)

    def _base_command(self, subcommand: str) -> List[str]:
        if not self.jar_path:
            raise ChromHMMError(
                f"ChromHMM jar not configured; pass jar_path or set {JAR_ENV_VAR}"
            )
        return [self.java, f"-mx{self.memory}", "-jar", self.jar_path, subcommand]

    def learn_model_command(self, config: LearnModelConfig) -> List[str]:
        """
        Assemble the LearnModel command line for a configuration.

        Positional arguments follow the options: input directory, output
        directory, number of states and genome assembly.
        """
        if config.numstates < 1:
            raise ValueError(f"numstates must be positive, got {config.numstates}")
        if config.binsize < 1:
            raise ValueError(f"binsize must be positive, got {config.binsize}")

        command = self._base_command("LearnModel")
        command += ["-b", str(config.binsize)]
        optional = [
            ("-l", config.chromsizefile),
            ("-u", config.coordsdir),
            ("-v", config.anchorsdir),
            ("-p", config.processors),
            ("-r", config.max_iterations),
            ("-s", config.seed),
        ]
        for flag, value in optional:
            if value is not None:
                command += [flag, str(value)]
        command += [
            "-noautoopen",
            config.inputdir,
            config.outputdir,
            str(config.numstates),
            config.assembly,
        ]
        return command

    def binarize_command(self, config: BinarizeConfig) -> List[str]:
        """Assemble a BinarizeBam or BinarizeBed command line"""
        if config.kind not in BINARIZE_COMMANDS:
            raise ValueError(
                f"Unknown binarize input kind '{config.kind}', expected one of {list(BINARIZE_COMMANDS)}"
            )
        command = self._base_command(BINARIZE_COMMANDS[config.kind])
        command += ["-b", str(config.binsize)]
        if config.controldir is not None:
            command += ["-c", config.controldir]
        command += [
            config.chromsizefile,
            config.inputdir,
            config.cellmarkfiletable,
            config.outputdir,
        ]
        return command

    @contextmanager
    def _scoped_process(self, command: List[str]) -> Iterator[subprocess.Popen]:
        """Start a process that is killed and reaped however the block exits"""
        with subprocess.Popen(
            command, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True
        ) as process:
            try:
                yield process
            finally:
                if process.poll() is None:
                    process.kill()

    def run(self, command: List[str]) -> subprocess.CompletedProcess:
        """
        Run a command to completion.

        Raises:
            ChromHMMError: If the process cannot start, exits non-zero or
                exceeds the timeout
        """
        self.logger.log_command(command)
        started = time.monotonic()
        try:
            with self._scoped_process(command) as process:
                try:
                    stdout, stderr = process.communicate(timeout=self.timeout)
                except subprocess.TimeoutExpired:
                    process.kill()
                    stdout, stderr = process.communicate()
                    raise ChromHMMError(
                        f"ChromHMM did not finish within {self.timeout} seconds",
                        stderr=stderr,
                    )
        except OSError as e:
            error = ChromHMMError(f"Could not start '{command[0]}': {e}")
            self.logger.log_error(error, "ChromHMM execution")
            raise error from e
        except ChromHMMError as e:
            self.logger.log_error(e, "ChromHMM execution")
            raise

        self.logger.log_process_exit(command[4], process.returncode, time.monotonic() - started)
        if process.returncode != 0:
            error = ChromHMMError(
                f"ChromHMM exited with status {process.returncode}",
                returncode=process.returncode,
                stderr=stderr,
            )
            self.logger.log_error(error, "ChromHMM execution")
            raise error

        self.logger.log_success(f"ChromHMM {command[4]} finished")
        return subprocess.CompletedProcess(command, process.returncode, stdout, stderr)

    def learn_model(self, config: LearnModelConfig) -> Segmentation:
        """
        Learn a model with ChromHMM and load its output directory.

        With read_only set, ChromHMM is not run and an existing output
        directory is loaded.
        """
        if not config.read_only:
            os.makedirs(config.outputdir, exist_ok=True)
            self.run(self.learn_model_command(config))
        else:
            self.logger.log_step("Read only", f"Loading existing output in {config.outputdir}")
        return self.loader.load_from_config(config)

    def binarize(self, config: BinarizeConfig) -> str:
        """Binarize aligned reads or BED files; returns the output directory"""
        os.makedirs(config.outputdir, exist_ok=True)
        self.run(self.binarize_command(config))
        return config.outputdir
