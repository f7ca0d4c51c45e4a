"""
GitHub Discussions → JSON content sync

Pulls discussions from configured GitHub repositories, normalizes them
into JSON records on disk, and reports which records were created,
updated or left unchanged since the previous run.
"""

__version__ = "1.0.0"
__author__ = "Veritas Civica"
