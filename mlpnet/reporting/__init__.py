"""Reporting utilities for mlpnet."""

from .metrics import CsvSink, JsonlSink
from .summary import describe_model, describe_network

__all__ = ["CsvSink", "JsonlSink", "describe_model", "describe_network"]
