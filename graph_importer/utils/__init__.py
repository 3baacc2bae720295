"""
Shared utilities for the graph importer.
"""

from .config import ImporterConfig, load_config
from .report import generate_import_report

__all__ = ["ImporterConfig", "load_config", "generate_import_report"]
