"""
Central Texas CAD Harvester - Core Package

This package contains the property-record ingestion pipeline for county
appraisal district websites: source adapters, fetch and rate-limit layers,
normalization, validation and quality scoring.
"""

__version__ = "0.1.0"
