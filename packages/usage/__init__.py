"""
Usage package - metered usage per subscription and billing period.

Usage accumulates into one record per (subscription, usage type, period);
usage beyond the plan's included units is billed at the record's per-unit rate.
"""
