"""Templar test suite."""
