"""
Comparison of trained ChromHMM models by emission correlation or likelihood.
"""

from collections import OrderedDict
from typing import Dict, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy.spatial.distance import cdist

from segmenter.domain.exceptions import DimensionMismatchError, EmptyInputError
from segmenter.domain.models import ComparisonResult, Segmentation
from segmenter.infrastructure.logger import Logger

COMPARISON_TYPES = ("correlation", "likelihood")

Models = Union[Sequence[Segmentation], Mapping[str, Segmentation]]


class ModelComparator:
    """Compares models learned with different numbers of states or inputs"""

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = logger if logger is not None else Logger()

    def compare_models(
        self,
        models: Models,
        type: str = "correlation",
        reference: Optional[Union[str, Segmentation]] = None,
    ) -> ComparisonResult:
        """
        Compare models against a reference model.

        In correlation mode every state of each compared model is correlated
        (Pearson, across marks) with every state of the reference and the best
        match is kept. per_state is a long (model, state, correlation) table
        with one row per state of each compared model; scores holds the mean
        of those maxima per model. The reference defaults to the model with
        the most states. A single model is compared against itself.

        In likelihood mode the log-likelihood reported by ChromHMM is
        collected for every model.

        Args:
            models: Models as a sequence or a name -> model mapping
            type: "correlation" or "likelihood"
            reference: Name of (or the) reference model

        Returns:
            ComparisonResult: Scores per compared model

        Raises:
            EmptyInputError: If no models are supplied
            DimensionMismatchError: If correlation is requested for models
                with different numbers of marks
            ValueError: On an unknown comparison type or reference
        """
        if type not in COMPARISON_TYPES:
            raise ValueError(f"Unknown comparison type '{type}', expected one of {COMPARISON_TYPES}")

        named = self._name_models(models)
        if not named:
            error = EmptyInputError("At least one model is required for comparison")
            self.logger.log_error(error, "Model comparison")
            raise error

        ref_name = self._select_reference(named, reference)
        self.logger.log_step("Model comparison", f"{type} of {len(named)} models, reference {ref_name}")

        if type == "likelihood":
            scores = pd.Series(
                {name: model.likelihood() for name, model in named.items()},
                name="likelihood",
                dtype=np.float64,
            )
            scores.index.name = "model"
            return ComparisonResult(type=type, reference=ref_name, scores=scores)

        self._check_marks(named)

        ref_emission = named[ref_name].emission()
        compared = OrderedDict(
            (name, model) for name, model in named.items() if name != ref_name
        )
        if not compared:
            compared[ref_name] = named[ref_name]

        best = [
            self.max_state_correlation(ref_emission, model.emission()).rename(name)
            for name, model in compared.items()
        ]
        per_state = pd.DataFrame(
            [(series.name, state, value) for series in best for state, value in series.items()],
            columns=["model", "state", "correlation"],
        )

        scores = pd.Series(
            [series.mean() for series in best],
            index=pd.Index(list(compared), name="model"),
            name="correlation",
            dtype=np.float64,
        )
        for name, score in scores.items():
            self.logger.log_statistics(f"Mean best-state correlation {name}", score)

        return ComparisonResult(type=type, reference=ref_name, scores=scores, per_state=per_state)

    def max_state_correlation(self, reference: pd.DataFrame, other: pd.DataFrame) -> pd.Series:
        """
        Best Pearson correlation of each state of a model with any reference state.

        Args:
            reference: Reference emission matrix (states x marks)
            other: Emission matrix of the compared model (states x marks)

        Returns:
            pd.Series: Maximum correlation per state of the compared model
        """
        if reference.shape[1] != other.shape[1]:
            raise DimensionMismatchError(
                f"Emission matrices have {reference.shape[1]} and {other.shape[1]} mark columns"
            )
        if set(reference.columns) == set(other.columns):
            other = other[reference.columns]

        # Constant emission vectors have no defined correlation
        with np.errstate(divide="ignore", invalid="ignore"):
            correlation = 1.0 - cdist(
                reference.to_numpy(dtype=np.float64),
                other.to_numpy(dtype=np.float64),
                metric="correlation",
            )
        correlation = pd.DataFrame(correlation, index=reference.index, columns=other.index)
        return correlation.max(axis=0)

    def _name_models(self, models: Models) -> Dict[str, Segmentation]:
        if isinstance(models, Mapping):
            return OrderedDict(models.items())

        named: Dict[str, Segmentation] = OrderedDict()
        for i, model in enumerate(models):
            base = model.name or f"model_{i + 1}"
            name, suffix = base, i + 1
            while name in named:
                name = f"{base}_{suffix}"
                suffix += 1
            named[name] = model
        return named

    def _select_reference(
        self, named: Dict[str, Segmentation], reference: Optional[Union[str, Segmentation]]
    ) -> str:
        if reference is None:
            # max() keeps the first model on ties
            return max(named, key=lambda name: named[name].numstates)
        if isinstance(reference, Segmentation):
            for name, model in named.items():
                if model is reference:
                    return name
            raise ValueError("Reference model is not among the compared models")
        if reference not in named:
            raise ValueError(f"Unknown reference model '{reference}' (available: {list(named)})")
        return reference

    def _check_marks(self, named: Dict[str, Segmentation]) -> None:
        mark_counts = {name: model.emissions.shape[1] for name, model in named.items()}
        if len(set(mark_counts.values())) > 1:
            error = DimensionMismatchError(
                f"Cannot correlate emission matrices with different mark counts: {mark_counts}"
            )
            self.logger.log_error(error, "Model comparison")
            raise error
