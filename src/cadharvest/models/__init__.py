"""
Models Package

Raw fetch results and the canonical property record.
"""
