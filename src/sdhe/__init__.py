"""SDHE indicator tracker package.

This package contains the classification engine, CSV ingestion pipeline,
indicator store, export, map colour scale and publishing modules used to
track Social Determinants of Health Equity indicators.
"""

import logging
import os
import sys

__version__ = "0.1.0"


# Configure logging for the entire package
def setup_package_logging() -> logging.Logger:
    """Set up the package-level logger."""
    logger = logging.getLogger(__name__)
    logger.setLevel(logging.INFO)

    # Avoid stacking handlers when the package is reloaded
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)

        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


logger = setup_package_logging()


def init_sdhe_package() -> None:
    """Log package details for debugging."""
    logger.debug("📊 Initializing SDHE Indicator Tracker")
    package_path = os.path.dirname(os.path.abspath(__file__))
    logger.debug(f"   📂 Package Path: {package_path}")


init_sdhe_package()
