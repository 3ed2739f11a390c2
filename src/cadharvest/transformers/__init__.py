"""
Transformers Package

Normalization helpers for raw appraisal district fields.
"""
