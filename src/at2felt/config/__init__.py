"""
Configuration module for the Airtable-to-Felt sync pipeline.
"""

from .settings import (
    ALL_SECTIONS,
    AirtableCredentials,
    Config,
    ConfigurationError,
    FeltConfig,
    NgrokConfig,
)

__all__ = [
    'Config',
    'ConfigurationError',
    'AirtableCredentials',
    'NgrokConfig',
    'FeltConfig',
    'ALL_SECTIONS',
]
