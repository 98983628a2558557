"""Clio: AI-written README files for GitHub repositories."""

__version__ = "1.0.0"
