"""
Core modules for the x402 usage ledger.

This package contains event logging, query filters, the aggregation
engine and overview metrics.
"""
