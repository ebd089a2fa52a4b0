"""
Hiring Thread Scraper
=====================

Cuts long "Who is hiring?" discussion threads into posting-aligned units,
extracts each unit with a language model under a rate-limited concurrent
scheduler, and compiles the ordered results into one artifact.
"""

__version__ = "0.1.0"

from .models import CompiledArtifact, ExtractionOutcome, RunReport, Unit

# Defer the pipeline import so the data models load without network clients
def get_pipeline():
    from .pipeline import HiringPipeline
    return HiringPipeline

__all__ = ["get_pipeline", "Unit", "ExtractionOutcome", "CompiledArtifact", "RunReport"]
