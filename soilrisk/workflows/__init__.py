"""
Workflows package for soilrisk.

This package contains the evaluation entry points used by the application and the CLI.
"""
from .evaluation import EvaluationService, ReportContext

__all__ = ['EvaluationService', 'ReportContext']
