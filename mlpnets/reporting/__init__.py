"""Reporting utilities for mlpnets."""

from .artifacts import write_manifest
from .metrics import CsvSink, JsonlSink

__all__ = ["CsvSink", "JsonlSink", "write_manifest"]
