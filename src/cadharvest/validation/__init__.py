"""
Validation Package
"""
