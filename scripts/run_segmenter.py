#!/usr/bin/env python3
"""
segmenter - Main Entry Point

Runs ChromHMM, loads its output and writes summaries and plots.
All processing is delegated to the application service.
"""

import sys
from pathlib import Path

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from segmenter.application.segmentation_service import SegmentationService
from segmenter.infrastructure.argument_parser import ArgumentParser
from segmenter.infrastructure.logger import Logger


def main(argv=None):
    """Main entry point - no business logic"""
    logger = Logger()

    try:
        logger.log_step("Starting", "segmenter")

        parser = ArgumentParser()
        command, config, options = parser.parse_arguments(argv)

        service = SegmentationService(options)

        if command in ("learn", "load"):
            result = service.process(config)
            logger.log_step("Summary", f"Wrote {len(result.written_files)} files")
        elif command == "binarize":
            outputdir = service.binarize(config)
            logger.log_step("Summary", f"Binarized files in {outputdir}")
        else:
            result = service.compare(config)
            for name, score in result.scores.items():
                print(f"{name}\t{score:.6f}")

        logger.log_success("segmenter completed successfully")
        return 0

    except KeyboardInterrupt:
        logger.log_warning("Processing interrupted by user")
        return 130

    except Exception as e:
        logger.log_error(e, "Main execution")
        print(f"❌ segmenter failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
