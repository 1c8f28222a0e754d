"""Publication-rules validator for W3C technical reports."""

__version__ = "1.0.0"
