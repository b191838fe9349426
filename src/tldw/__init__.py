"""TLDW - cached YouTube video summaries with credit metering."""

__version__ = "0.1.0"
