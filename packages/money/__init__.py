"""
Money package - currency normalization, conversion and tax calculation.

All amounts leave this package as integer minor units.
"""
