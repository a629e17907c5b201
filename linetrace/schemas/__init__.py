"""Schemas for the application."""

from .attribution import AnalysisRequest

__all__ = ["AnalysisRequest"]
