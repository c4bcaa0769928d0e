"""
Visualization of loaded segmentations and derived summaries.
"""

import os
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from matplotlib.colors import LinearSegmentedColormap

from segmenter.domain.models import ComparisonResult, Segmentation
from segmenter.infrastructure.logger import Logger

OUTPUT_FORMATS = ["pdf", "png"]


class PlotGenerator:
    """Renders segmentation tables with seaborn and matplotlib"""

    def __init__(self, logger: Optional[Logger] = None, formats: Optional[List[str]] = None):
        self.logger = logger if logger is not None else Logger()
        self.formats = formats if formats is not None else OUTPUT_FORMATS

    def _save(self, fig, output_path: str) -> List[str]:
        """Save a figure in every configured format and close it"""
        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        base, _ = os.path.splitext(output_path)
        written = []
        for ext in self.formats:
            path = f"{base}.{ext}"
            fig.savefig(path, bbox_inches="tight")
            written.append(path)
        plt.close(fig)
        self.logger.log_save(output_path)
        return written

    def create_heatmap(
        self,
        df: pd.DataFrame,
        title: str,
        output_path: str,
        cmap="Blues",
        label: str = "",
        scale_columns: bool = False,
        annot: bool = False,
    ) -> List[str]:
        """
        Create a heatmap of a state-indexed table.

        Args:
            df: Table with states as rows
            title: Plot title
            output_path: Output file path; the extension is replaced per format
            cmap: Colormap name or object
            label: Colorbar label
            scale_columns: Scale every column to [0, 1] before coloring, the
                way ChromHMM colors enrichment tables
            annot: Write values into the cells

        Returns:
            List[str]: Files written
        """
        values = df
        if scale_columns:
            span = (df.max() - df.min()).replace(0, 1)
            values = (df - df.min()) / span

        fig, ax = plt.subplots(
            figsize=(max(4, 0.6 * df.shape[1] + 2), max(3, 0.4 * df.shape[0] + 1))
        )
        sns.heatmap(
            values,
            ax=ax,
            cmap=cmap,
            annot=df if annot else False,
            fmt=".2f",
            linewidths=0.5,
            linecolor="white",
            cbar_kws={"label": label},
        )
        ax.set_title(title.replace("_", " "))
        ax.set_ylabel("State")
        ax.tick_params(axis="x", rotation=90)
        return self._save(fig, output_path)

    def create_emission_heatmap(self, segmentation: Segmentation, output_path: str) -> List[str]:
        return self.create_heatmap(
            segmentation.emission(),
            f"Emission parameters ({segmentation.numstates} states)",
            output_path,
            cmap="Blues",
            label="P(mark | state)",
            annot=True,
        )

    def create_transition_heatmap(self, segmentation: Segmentation, output_path: str) -> List[str]:
        return self.create_heatmap(
            segmentation.transition(),
            f"Transition parameters ({segmentation.numstates} states)",
            output_path,
            cmap="Reds",
            label="P(to | from)",
        )

    def create_enrichment_heatmap(self, df: pd.DataFrame, title: str, output_path: str) -> List[str]:
        """Enrichment heatmap with per-column scaling"""
        white_blue = LinearSegmentedColormap.from_list("white_to_blue", ["white", "darkblue"], N=100)
        return self.create_heatmap(
            df, title, output_path, cmap=white_blue, label="Scaled enrichment", scale_columns=True
        )

    def create_frequency_plot(self, frequency: pd.DataFrame, output_path: str) -> List[str]:
        """Bar plot of a tidy (cell, state, frequency) table"""
        fig, ax = plt.subplots(figsize=(max(6, 0.5 * frequency["state"].nunique() + 2), 4))
        sns.barplot(data=frequency, x="state", y="frequency", hue="cell", ax=ax)
        ax.set_xlabel("State")
        ax.set_ylabel("Frequency")
        ax.set_title("Chromatin state frequency")
        return self._save(fig, output_path)

    def create_comparison_plot(self, result: ComparisonResult, output_path: str) -> List[str]:
        """Per-state correlation heatmap, or likelihood bars"""
        if result.per_state is not None:
            # Models with fewer states leave blank cells
            wide = result.per_state.pivot(index="state", columns="model", values="correlation")
            return self.create_heatmap(
                wide,
                f"Best emission correlation with {result.reference}",
                output_path,
                cmap="viridis",
                label="Pearson correlation",
                annot=True,
            )

        fig, ax = plt.subplots(figsize=(max(4, 0.8 * len(result.scores) + 2), 4))
        sns.barplot(x=[str(i) for i in result.scores.index], y=result.scores.values, ax=ax, color="steelblue")
        ax.set_xlabel("Model")
        ax.set_ylabel("Log-likelihood")
        ax.set_title("Model likelihood")
        return self._save(fig, output_path)

    def create_all_visualizations(
        self,
        segmentation: Segmentation,
        output_dir: str,
        frequency: Optional[pd.DataFrame] = None,
    ) -> Dict[str, List[str]]:
        """Create every plot available for a loaded segmentation"""
        plots_dir = os.path.join(output_dir, "plots")
        name = segmentation.name or f"model_{segmentation.numstates}"
        written: Dict[str, List[str]] = {}

        written["emission"] = self.create_emission_heatmap(
            segmentation, os.path.join(plots_dir, f"{name}_emission.png")
        )
        written["transition"] = self.create_transition_heatmap(
            segmentation, os.path.join(plots_dir, f"{name}_transition.png")
        )

        tables = [
            ("overlap", segmentation.overlaps),
            ("TSS", segmentation.tss_enrichment),
            ("TES", segmentation.tes_enrichment),
        ]
        for kind, per_cell in tables:
            for cell, df in per_cell.items():
                written[f"{cell}_{kind}"] = self.create_enrichment_heatmap(
                    df,
                    f"{cell} {kind} enrichment",
                    os.path.join(plots_dir, f"{cell}_{name}_{kind}.png"),
                )

        if frequency is not None:
            written["frequency"] = self.create_frequency_plot(
                frequency, os.path.join(plots_dir, f"{name}_frequency.png")
            )

        self.logger.log_success(f"Created {len(written)} plots in {plots_dir}")
        return written
