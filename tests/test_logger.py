#!/usr/bin/env python3
"""
Logging helper tests for segmenter
"""

import logging

import pytest

from segmenter.infrastructure.logger import LOGGER_NAME, Logger


class TestLogger:
    """Test the shared segmenter logger"""

    @pytest.mark.unit
    def test_model_summary(self, caplog):
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            Logger().log_model("model_3", 3, 5, -12345.678)
        assert "model_3: 3 states x 5 marks, log-likelihood -12345.6780" in caplog.text

    @pytest.mark.unit
    def test_process_exit_level_follows_status(self, caplog):
        logger = Logger()
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            logger.log_process_exit("LearnModel", 0, 1.3)
            logger.log_process_exit("BinarizeBam", 2, 0.5)
        levels = [record.levelno for record in caplog.records]
        assert levels == [logging.INFO, logging.ERROR]
        assert "LearnModel exited with 0 after 1.3s" in caplog.records[0].getMessage()

    @pytest.mark.unit
    def test_log_file(self, tmp_path):
        log_file = tmp_path / "segmenter.log"
        logger = Logger(str(log_file))
        logger.log_warning("no overlap file")
        for handler in logger.logger.handlers:
            handler.flush()
        assert "WARNING" in log_file.read_text()
        assert "no overlap file" in log_file.read_text()

    @pytest.mark.unit
    def test_handlers_are_not_duplicated(self):
        Logger()
        logger = Logger()
        assert len(logger.logger.handlers) == 1
