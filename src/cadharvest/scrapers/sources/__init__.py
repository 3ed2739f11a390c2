"""
Appraisal district adapters: Hays, Travis and Williamson counties.
"""

from .hays import HaysCADAdapter
from .travis import TravisCADAdapter
from .williamson import WilliamsonCADAdapter

__all__ = ["HaysCADAdapter", "TravisCADAdapter", "WilliamsonCADAdapter"]
