"""Configuration module for project settings and environment variables.

This module manages configuration settings and environment-specific
parameters for the SDHE indicator tracker. Values are read once at import
time; tests reload the module after changing the environment.
"""

import os

from dotenv import load_dotenv

from sdhe.exceptions import ConfigurationError
from sdhe.logging_config import create_logger

logger = create_logger(__name__)

# Values already set in the environment take precedence over a local .env
load_dotenv()

# Relative to where the commands are run, not to the installed package
DATA_DIR = os.getenv("DATA_DIR", os.path.join(os.getcwd(), "data"))
EXPORT_DIR = os.getenv("EXPORT_DIR", os.path.join(DATA_DIR, "exports"))

# Local DuckDB file holding the indicators table
DB_PATH = os.getenv("DB_PATH", os.path.join(DATA_DIR, "sdhe.db"))

# Records per upsert round trip during a CSV import
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "50"))

# Indicator codes whose values are shown with two decimals (e.g. Gini)
HIGH_PRECISION_INDICATORS = tuple(
    code.strip().upper()
    for code in os.getenv("HIGH_PRECISION_INDICATORS", "GINI").split(",")
    if code.strip()
)

# Environment configurations
TARGET = os.getenv("TARGET", "dev").lower()
USERNAME = os.getenv("USERNAME", "default").lower()

# Construct S3 environment path
S3_ENV = TARGET if TARGET == "prod" else f"dev/{TARGET}_{USERNAME}"

ENABLE_S3_UPLOAD = os.getenv("ENABLE_S3_UPLOAD", "false").lower() == "true"

S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME", "sdhe-indicators")
PUBLISH_AREA_FOLDER = f"{S3_ENV}/published"


def validate_config():
    """
    Validate critical configuration parameters.
    Raises ConfigurationError if any required config is missing or invalid.

    :raises ConfigurationError: If configuration is invalid
    """
    if BATCH_SIZE <= 0:
        raise ConfigurationError(f"BATCH_SIZE must be positive, got {BATCH_SIZE}")

    if not DB_PATH:
        raise ConfigurationError("Database path (DB_PATH) is not configured")

    for dir_name, dir_path in (("DATA_DIR", DATA_DIR), ("EXPORT_DIR", EXPORT_DIR)):
        if not dir_path:
            raise ConfigurationError(
                f"Missing required directory configuration: {dir_name}"
            )
        try:
            os.makedirs(dir_path, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Unable to create directory {dir_name} at {dir_path}: {e}"
            )

    db_dir = os.path.dirname(DB_PATH)
    if db_dir:
        try:
            os.makedirs(db_dir, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Unable to create database directory at {db_dir}: {e}"
            )

    if ENABLE_S3_UPLOAD and not S3_BUCKET_NAME:
        raise ConfigurationError(
            "S3 upload is enabled but no bucket name is specified"
        )

    if not TARGET:
        raise ConfigurationError("TARGET environment is not set")

    logger.info("Configuration validation successful")
