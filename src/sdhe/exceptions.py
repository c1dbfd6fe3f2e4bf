"""
Custom exceptions for the sdhe package.

This module defines a hierarchy of exceptions to provide more
precise error handling across ingestion, persistence and publishing.
Parse problems inside a CSV never raise; they degrade to the no-data
sentinel instead.
"""


class SDHEBaseError(Exception):
    """
    Base exception for all sdhe errors.

    All custom exceptions in the package should inherit from this class.
    """

    pass


class ConfigurationError(SDHEBaseError):
    """
    Raised when there are configuration-related issues.

    This exception is used when:
    - Required configuration parameters are missing
    - Configuration values are invalid (e.g. a non-positive batch size)
    """

    pass


class IngestError(SDHEBaseError):
    """
    Raised when a CSV import cannot be completed.

    Covers errors specific to one user-initiated import, including:
    - The source file cannot be read
    - The store cannot be read for the merge step
    - A batch upsert failed part way through
    """

    pass


class CSVReadError(IngestError):
    """
    Raised when an uploaded CSV file cannot be read as text.
    """

    pass


class StoreError(SDHEBaseError):
    """
    Raised for persistence-store failures on read or write.
    """

    pass


class BatchUpsertError(StoreError):
    """
    Raised when a batch upsert fails.

    Batches are sent sequentially; earlier batches stay written, so the
    store may hold a partial import when this is raised.

    Attributes:
        batch_index: Zero-based index of the failing batch
        written: Number of records already written by earlier batches
    """

    def __init__(self, message: str, batch_index: int = 0, written: int = 0):
        super().__init__(message)
        self.batch_index = batch_index
        self.written = written


class PublishError(SDHEBaseError):
    """
    Raised for S3 publishing errors.

    Covers issues such as:
    - Authentication failures
    - Bucket or object access issues
    - Snapshot serialization problems
    """

    pass
