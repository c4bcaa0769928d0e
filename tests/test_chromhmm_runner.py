#!/usr/bin/env python3
"""
ChromHMM subprocess tests for segmenter

Command lines are checked directly; execution is exercised with a small
shell script standing in for java.
"""

import os
from pathlib import Path

import pytest

from segmenter.domain.exceptions import ChromHMMError
from segmenter.domain.models import BinarizeConfig, LearnModelConfig
from segmenter.infrastructure.chromhmm_runner import JAR_ENV_VAR, ChromHMMRunner

posix_only = pytest.mark.skipif(os.name != "posix", reason="fake java is a POSIX shell script")


@pytest.fixture
def learn_config(tmp_path, model_dir):
    inputdir = tmp_path / "BINARY"
    inputdir.mkdir()
    return LearnModelConfig(
        inputdir=str(inputdir),
        outputdir=str(model_dir),
        numstates=3,
        assembly="hg19",
        coordsdir="COORDS/hg19",
        anchorsdir="ANCHORFILES/hg19",
        chromsizefile="CHROMSIZES/hg19.txt",
        cells=["K562", "GM12878"],
        binsize=200,
    )


class TestCommandLines:
    """Test assembling ChromHMM command lines"""

    @pytest.mark.unit
    def test_learn_model_command(self, learn_config):
        runner = ChromHMMRunner(jar_path="/opt/ChromHMM/ChromHMM.jar", memory="8G")
        command = runner.learn_model_command(learn_config)
        assert command[:5] == ["java", "-mx8G", "-jar", "/opt/ChromHMM/ChromHMM.jar", "LearnModel"]
        assert command[5:7] == ["-b", "200"]
        assert command[command.index("-l") + 1] == "CHROMSIZES/hg19.txt"
        assert command[command.index("-u") + 1] == "COORDS/hg19"
        assert command[command.index("-v") + 1] == "ANCHORFILES/hg19"
        assert "-noautoopen" in command
        assert command[-4:] == [learn_config.inputdir, learn_config.outputdir, "3", "hg19"]

    @pytest.mark.unit
    def test_optional_flags(self, learn_config):
        learn_config.processors = 4
        learn_config.max_iterations = 50
        learn_config.seed = 13
        learn_config.coordsdir = None
        command = ChromHMMRunner(jar_path="ChromHMM.jar").learn_model_command(learn_config)
        assert command[command.index("-p") + 1] == "4"
        assert command[command.index("-r") + 1] == "50"
        assert command[command.index("-s") + 1] == "13"
        assert "-u" not in command

    @pytest.mark.unit
    def test_binarize_commands(self):
        config = BinarizeConfig(
            inputdir="bams",
            cellmarkfiletable="cellmarkfiletable.txt",
            outputdir="BINARY",
            chromsizefile="hg19.txt",
            controldir="controls",
        )
        runner = ChromHMMRunner(jar_path="ChromHMM.jar")
        command = runner.binarize_command(config)
        assert command[4] == "BinarizeBam"
        assert command[command.index("-c") + 1] == "controls"
        assert command[-4:] == ["hg19.txt", "bams", "cellmarkfiletable.txt", "BINARY"]

        config.kind = "bed"
        config.controldir = None
        command = runner.binarize_command(config)
        assert command[4] == "BinarizeBed"
        assert "-c" not in command

    @pytest.mark.unit
    def test_unknown_binarize_kind(self):
        config = BinarizeConfig("in", "table", "out", "sizes", kind="sam")
        with pytest.raises(ValueError, match="sam"):
            ChromHMMRunner(jar_path="ChromHMM.jar").binarize_command(config)

    @pytest.mark.unit
    def test_invalid_numstates(self, learn_config):
        learn_config.numstates = 0
        with pytest.raises(ValueError, match="numstates"):
            ChromHMMRunner(jar_path="ChromHMM.jar").learn_model_command(learn_config)

    @pytest.mark.unit
    def test_jar_from_environment(self, learn_config, monkeypatch):
        monkeypatch.setenv(JAR_ENV_VAR, "/env/ChromHMM.jar")
        command = ChromHMMRunner().learn_model_command(learn_config)
        assert command[3] == "/env/ChromHMM.jar"

    @pytest.mark.unit
    def test_missing_jar(self, learn_config, monkeypatch):
        monkeypatch.delenv(JAR_ENV_VAR, raising=False)
        with pytest.raises(ChromHMMError, match=JAR_ENV_VAR):
            ChromHMMRunner().learn_model_command(learn_config)


class TestExecution:
    """Test running ChromHMM through a stand-in java"""

    @posix_only
    @pytest.mark.integration
    def test_learn_model_runs_and_loads(self, learn_config, fake_java):
        java, args_file = fake_java(exit_code=0)
        runner = ChromHMMRunner(jar_path="ChromHMM.jar", java=java)
        segmentation = runner.learn_model(learn_config)

        assert segmentation.numstates == 3
        assert segmentation.cells == ["K562", "GM12878"]
        recorded = args_file.read_text().split()
        assert recorded[:3] == ["-mx4000M", "-jar", "ChromHMM.jar"]
        assert recorded[3] == "LearnModel"

    @posix_only
    @pytest.mark.integration
    def test_learn_model_leaves_binarized_files_alone(self, learn_config, fake_java):
        # Unparsable on purpose: reading it would raise ParseError
        (Path(learn_config.inputdir) / "K562_chr1_binary.txt").write_text("junk\n")
        java, _ = fake_java(exit_code=0)
        segmentation = ChromHMMRunner(jar_path="ChromHMM.jar", java=java).learn_model(learn_config)
        assert segmentation.binarized == {}

    @posix_only
    @pytest.mark.integration
    def test_learn_model_loads_bins_on_request(self, learn_config, fake_java, binarized_writer):
        binarized_writer(learn_config.inputdir, "K562", "chr1")
        learn_config.load_bins = True
        java, _ = fake_java(exit_code=0)
        segmentation = ChromHMMRunner(jar_path="ChromHMM.jar", java=java).learn_model(learn_config)
        assert segmentation.bins("K562")["chr1"].shape == (3, 5)

    @posix_only
    @pytest.mark.integration
    def test_non_zero_exit_carries_stderr(self, learn_config, fake_java):
        java, _ = fake_java(exit_code=3, stderr="Exception in thread main")
        runner = ChromHMMRunner(jar_path="ChromHMM.jar", java=java)
        with pytest.raises(ChromHMMError) as excinfo:
            runner.learn_model(learn_config)
        assert excinfo.value.returncode == 3
        assert "Exception in thread main" in excinfo.value.stderr
        assert "status 3" in str(excinfo.value)

    @posix_only
    @pytest.mark.integration
    def test_timeout_kills_process(self, learn_config, fake_java):
        java, _ = fake_java(sleep=5)
        runner = ChromHMMRunner(jar_path="ChromHMM.jar", java=java, timeout=0.5)
        with pytest.raises(ChromHMMError, match="did not finish"):
            runner.learn_model(learn_config)

    @pytest.mark.unit
    def test_missing_java_executable(self, learn_config, tmp_path):
        runner = ChromHMMRunner(jar_path="ChromHMM.jar", java=str(tmp_path / "no_such_java"))
        with pytest.raises(ChromHMMError, match="Could not start"):
            runner.learn_model(learn_config)

    @posix_only
    @pytest.mark.integration
    def test_binarize_creates_output_dir(self, tmp_path, fake_java):
        java, args_file = fake_java(exit_code=0)
        config = BinarizeConfig(
            inputdir=str(tmp_path),
            cellmarkfiletable="table.txt",
            outputdir=str(tmp_path / "BINARY_OUT"),
            chromsizefile="hg19.txt",
        )
        outputdir = ChromHMMRunner(jar_path="ChromHMM.jar", java=java).binarize(config)
        assert os.path.isdir(outputdir)
        assert "BinarizeBam" in args_file.read_text()

    @pytest.mark.unit
    def test_read_only_skips_execution(self, learn_config, monkeypatch):
        monkeypatch.delenv(JAR_ENV_VAR, raising=False)
        learn_config.read_only = True
        segmentation = ChromHMMRunner(java="/does/not/exist").learn_model(learn_config)
        assert segmentation.numstates == 3
