"""
Monitoring Package

Data quality scoring and batch metrics.
"""
