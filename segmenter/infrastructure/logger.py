"""
Centralized logging for the segmenter package.

One named logger ("segmenter") is shared by every layer; helpers prefix
messages with a marker so ChromHMM runs, file I/O and model summaries are easy
to tell apart in long logs.
"""

import logging
from typing import List, Optional

LOGGER_NAME = "segmenter"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Logger:
    """Centralized logging for ChromHMM runs and result processing"""

    def __init__(self, log_file: Optional[str] = None, level: int = logging.INFO):
        """Initialize logger with optional file output"""
        self.logger = logging.getLogger(LOGGER_NAME)
        self.logger.setLevel(level)

        # Every Logger reconfigures the shared handlers
        self.logger.handlers.clear()
        formatter = logging.Formatter(LOG_FORMAT)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        self.logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def log_step(self, step: str, details: str) -> None:
        self.logger.info(f"🔍 {step}: {details}")

    def log_error(self, error: Exception, context: str) -> None:
        """Log an error with context and traceback"""
        self.logger.error(f"❌ Error in {context}: {error}", exc_info=True)

    def log_warning(self, warning: str) -> None:
        self.logger.warning(f"⚠️ {warning}")

    def log_success(self, message: str) -> None:
        self.logger.info(f"✅ {message}")

    def log_save(self, file_path: str) -> None:
        self.logger.info(f"💾 Saved to: {file_path}")

    def log_load(self, file_path: str) -> None:
        self.logger.info(f"📂 Loaded: {file_path}")

    def log_command(self, command: List[str]) -> None:
        """Log an external command line as it would be typed in a shell"""
        self.logger.info(f"☕ Running: {' '.join(command)}")

    def log_process_exit(self, subcommand: str, returncode: int, seconds: float) -> None:
        """Log how a ChromHMM subprocess ended and how long it ran"""
        level = logging.INFO if returncode == 0 else logging.ERROR
        self.logger.log(level, f"☕ ChromHMM {subcommand} exited with {returncode} after {seconds:.1f}s")

    def log_model(self, name: str, numstates: int, nummarks: int, likelihood: float) -> None:
        """Log a one-line summary of a loaded model"""
        self.logger.info(
            f"🧬 {name}: {numstates} states x {nummarks} marks, log-likelihood {likelihood:.4f}"
        )

    def log_matrix_shape(self, matrix_name: str, shape: tuple) -> None:
        self.logger.info(f"📊 {matrix_name} shape: {shape}")

    def log_statistics(self, stat_name: str, value: float) -> None:
        self.logger.info(f"📈 {stat_name}: {value:.6f}")
