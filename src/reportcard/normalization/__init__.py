"""
Data normalization layer for standardizing source layouts.

Handles header normalization, alias-based sheet/column reconciliation
and numeric/identifier cell coercion.
"""
