"""Metrics recording and statistics."""
