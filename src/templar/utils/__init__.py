"""Utility modules for templar."""
