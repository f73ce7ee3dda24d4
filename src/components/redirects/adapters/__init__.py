"""
Adapters for the redirects component.
"""

from .csv_source import LocalCsvRecordSource, default_record_source

__all__ = [
    "LocalCsvRecordSource",
    "default_record_source",
]
