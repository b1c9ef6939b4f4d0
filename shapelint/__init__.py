"""
shapelint — Validate RDF data graphs against node shapes.
"""

from shapelint.api import FileReadError, validate, validate_file
from shapelint.engine import ConfigurationError, ValidationOptions, run
from shapelint.model import (
    NodeShape,
    PropertyShape,
    RuleConstraint,
    Severity,
    ValidationReport,
    ValidationResult,
)

__all__ = [
    "ConfigurationError",
    "FileReadError",
    "NodeShape",
    "PropertyShape",
    "RuleConstraint",
    "Severity",
    "ValidationOptions",
    "ValidationReport",
    "ValidationResult",
    "run",
    "validate",
    "validate_file",
]
