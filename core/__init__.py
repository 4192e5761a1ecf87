"""
Core utilities and configuration for the catalog ingestion pipeline.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Async engine and session factory
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration

Usage:
    from core.config import settings
    from core.database import create_engine, create_session_maker
    from core.exceptions import APIExtractionError, SetupError
    from core.logging import setup_logging

Example:
    setup_logging()

    engine = create_engine()
    session_maker = create_session_maker(engine)
    async with session_maker() as session:
        ...
"""

__all__ = [
    "settings",
    "create_engine",
    "create_session_maker",
    "setup_logging",
    # Exceptions
    "ETLException",
    "ExtractionError",
    "APIExtractionError",
    "AuthenticationError",
    "MalformedPayloadError",
    "ResourceNotFoundError",
    "TransformationError",
    "NormalizationError",
    "MappingFileError",
    "LoadError",
    "DatabaseError",
    "UpsertError",
    "SetupError",
    "ConfigurationError",
    "ConnectivityError",
]
