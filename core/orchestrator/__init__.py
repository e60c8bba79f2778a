"""Orchestration engines for data ingestion."""
from .backfill import BackfillOrchestrator, BackfillReport, build_jobs

__all__ = ['BackfillOrchestrator', 'BackfillReport', 'build_jobs']
