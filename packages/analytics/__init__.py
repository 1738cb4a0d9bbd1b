"""
Analytics package - revenue metrics computed from the payment ledger.
"""
