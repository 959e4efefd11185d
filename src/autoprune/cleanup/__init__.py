"""Destination cleanup: discovery plus the tag, sweep and delete pipeline."""

from .discovery import DirectoryScanner
from .models import CandidateFile, CleanupResult
from .pipeline import CleanupPipeline

__all__ = ["CandidateFile", "CleanupPipeline", "CleanupResult", "DirectoryScanner"]
