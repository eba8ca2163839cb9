"""Qiniu Kodo backend for a pluggable object storage layer."""

__version__ = "1.0.0"
