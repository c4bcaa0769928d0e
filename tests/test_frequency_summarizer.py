#!/usr/bin/env python3
"""
State frequency tests for segmenter
"""

import numpy as np
import pandas as pd
import pytest

from segmenter.domain.services.frequency_summarizer import FrequencySummarizer


@pytest.fixture
def summarizer():
    return FrequencySummarizer()


class TestStateFrequency:
    """Test interval counting per cell and state"""

    @pytest.mark.unit
    def test_counts_intervals_not_bases(self, summarizer, segmentation):
        freq = summarizer.state_frequency(segmentation, tidy=False)
        # K562 has two short E1 segments and one long E3 segment
        assert freq.loc["K562"].tolist() == [2, 1, 1]
        assert freq.loc["GM12878"].tolist() == [1, 2, 0]

    @pytest.mark.unit
    def test_tidy_has_every_state_per_cell(self, summarizer, segmentation):
        freq = summarizer.state_frequency(segmentation)
        assert list(freq.columns) == ["cell", "state", "frequency"]
        assert len(freq) == 2 * segmentation.numstates
        for _, group in freq.groupby("cell"):
            assert group["state"].tolist() == [1, 2, 3]

        zero = freq[(freq["cell"] == "GM12878") & (freq["state"] == 3)]
        assert zero["frequency"].item() == 0

    @pytest.mark.unit
    def test_normalized_sums_to_one(self, summarizer, segmentation):
        freq = summarizer.state_frequency(segmentation, normalize=True)
        sums = freq.groupby("cell")["frequency"].sum()
        np.testing.assert_allclose(sums.to_numpy(), 1.0, atol=1e-6)
        assert ((freq["frequency"] >= 0) & (freq["frequency"] <= 1)).all()

        k562 = freq[freq["cell"] == "K562"].set_index("state")["frequency"]
        assert k562[1] == pytest.approx(0.5)
        assert k562[3] == pytest.approx(0.25)

    @pytest.mark.unit
    def test_cell_order_is_kept(self, summarizer, segmentation):
        freq = summarizer.state_frequency(segmentation, tidy=False)
        assert list(freq.index) == ["K562", "GM12878"]
        assert list(freq.columns) == [1, 2, 3]


class TestRawSegments:
    """Test frequency over plain segment tables"""

    @pytest.mark.unit
    def test_requires_numstates(self, summarizer):
        segments = {"a": pd.DataFrame({"chrom": ["chr1"], "start": [0], "end": [200], "state": [1]})}
        with pytest.raises(ValueError, match="numstates"):
            summarizer.state_frequency(segments)

    @pytest.mark.unit
    def test_cell_without_segments_gives_zeros(self, summarizer):
        segments = {
            "a": pd.DataFrame({"chrom": ["chr1", "chr1"], "start": [0, 200], "end": [200, 400], "state": [1, 4]}),
            "empty": pd.DataFrame({"chrom": [], "start": [], "end": [], "state": []}),
        }
        freq = summarizer.state_frequency(segments, normalize=True, tidy=False, numstates=4)
        assert freq.loc["a"].tolist() == [0.5, 0.0, 0.0, 0.5]
        assert freq.loc["empty"].tolist() == [0.0, 0.0, 0.0, 0.0]

    @pytest.mark.unit
    def test_unknown_state_rejected(self, summarizer):
        segments = {"a": pd.DataFrame({"chrom": ["chr1"], "start": [0], "end": [200], "state": [5]})}
        with pytest.raises(ValueError, match="outside 1..3"):
            summarizer.state_frequency(segments, numstates=3)
