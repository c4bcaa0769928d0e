"""
Application service orchestrating ChromHMM runs and result summaries.
"""

import os
from typing import List, Optional

from segmenter.domain.models import (
    BinarizeConfig,
    CompareConfig,
    ComparisonResult,
    LearnModelConfig,
    ProcessingResult,
    RunOptions,
    Segmentation,
)
from segmenter.domain.services.enrichment_accessor import ENRICHMENT_KINDS, EnrichmentAccessor
from segmenter.domain.services.frequency_summarizer import FrequencySummarizer
from segmenter.domain.services.model_comparator import ModelComparator
from segmenter.infrastructure.chromhmm_runner import ChromHMMRunner
from segmenter.infrastructure.data.data_loader import ChromHMMOutputLoader
from segmenter.infrastructure.data.data_saver import SegmentationWriter
from segmenter.infrastructure.logger import Logger
from segmenter.presentation.visualization.plot_generator import PlotGenerator


class SegmentationService:
    """Main application service: run or load, summarize, save and plot"""

    def __init__(
        self,
        options: Optional[RunOptions] = None,
        runner: Optional[ChromHMMRunner] = None,
        logger: Optional[Logger] = None,
    ):
        self.options = options if options is not None else RunOptions()
        self.logger = logger if logger is not None else Logger(self.options.log_file)

        self.loader = ChromHMMOutputLoader(self.logger)
        self.runner = runner if runner is not None else ChromHMMRunner(
            jar_path=self.options.jar_path,
            java=self.options.java,
            memory=self.options.memory,
            timeout=self.options.timeout,
            logger=self.logger,
            loader=self.loader,
        )
        self.writer = SegmentationWriter(self.logger)
        self.frequency_summarizer = FrequencySummarizer(self.logger)
        self.model_comparator = ModelComparator(self.logger)
        self.enrichment_accessor = EnrichmentAccessor(self.logger)
        self.plot_generator = PlotGenerator(self.logger)

    def _report_dir(self, default: str) -> str:
        report_dir = self.options.report_dir or os.path.join(default, "segmenter")
        os.makedirs(report_dir, exist_ok=True)
        return report_dir

    def process(self, config: LearnModelConfig) -> ProcessingResult:
        """
        Learn (or load) a model and write its summaries.

        Args:
            config: LearnModel configuration

        Returns:
            ProcessingResult: Loaded model, frequency tables and written files
        """
        self.logger.log_step("Processing pipeline", f"{config.numstates}-state model")

        # Step 1: Run ChromHMM (skipped in read-only mode) and load the output
        segmentation = self.runner.learn_model(config)

        # Step 2: State frequencies
        frequency = self.frequency_summarizer.state_frequency(segmentation)
        normalized = self.frequency_summarizer.state_frequency(segmentation, normalize=True)

        # Step 3: Save tables
        report_dir = self._report_dir(config.outputdir)
        name = segmentation.name
        written: List[str] = []

        path = os.path.join(report_dir, f"{name}_frequency.tsv")
        self.writer.write_frequency(frequency, path)
        written.append(path)

        path = os.path.join(report_dir, f"{name}_frequency_normalized.tsv")
        self.writer.write_frequency(normalized, path)
        written.append(path)

        # Step 4: Enrichment tables with display names
        available = {
            "overlap": segmentation.overlaps,
            "tss": segmentation.tss_enrichment,
            "tes": segmentation.tes_enrichment,
        }
        for kind in ENRICHMENT_KINDS:
            for cell in available[kind]:
                table = self.enrichment_accessor.get(segmentation, kind, cell, short_names=True)
                path = os.path.join(report_dir, f"{cell}_{name}_{kind}.tsv")
                self.writer.write_table(table, path)
                written.append(path)

        # Step 5: Plots
        if self.options.plots:
            plots = self.plot_generator.create_all_visualizations(
                segmentation, report_dir, frequency=normalized
            )
            for files in plots.values():
                written.extend(files)

        self.logger.log_success("Processing pipeline completed successfully")
        return ProcessingResult(
            segmentation=segmentation,
            frequency=frequency,
            normalized_frequency=normalized,
            written_files=written,
        )

    def binarize(self, config: BinarizeConfig) -> str:
        """Binarize input data with ChromHMM"""
        self.logger.log_step("Binarization", f"{config.kind.upper()} files in {config.inputdir}")
        return self.runner.binarize(config)

    def load_models(self, config: CompareConfig) -> List[Segmentation]:
        """Load every model named by a comparison configuration"""
        outputdirs = config.outputdirs
        if len(outputdirs) == 1 and len(config.numstates) > 1:
            outputdirs = outputdirs * len(config.numstates)
        if len(outputdirs) != len(config.numstates):
            raise ValueError(
                f"Got {len(outputdirs)} output directories for {len(config.numstates)} state counts"
            )

        models = []
        for outputdir, numstates in zip(outputdirs, config.numstates):
            name = f"{os.path.basename(os.path.normpath(outputdir))}_{numstates}"
            models.append(
                self.loader.load(
                    outputdir,
                    numstates,
                    cells=config.cells,
                    annotation=config.annotation,
                    name=name,
                )
            )
        return models

    def compare(self, config: CompareConfig) -> ComparisonResult:
        """Load models, compare them and save the comparison"""
        models = self.load_models(config)
        result = self.model_comparator.compare_models(models, type=config.type)

        report_dir = self._report_dir(config.outputdirs[0] if config.outputdirs else os.getcwd())
        self.writer.write_comparison(result, report_dir)
        if self.options.plots:
            self.plot_generator.create_comparison_plot(
                result, os.path.join(report_dir, f"comparison_{result.type}.png")
            )
        return result
