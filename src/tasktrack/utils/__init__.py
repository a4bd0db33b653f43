"""Shared helpers for tasktrack."""
