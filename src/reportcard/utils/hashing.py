"""
Deterministic hashing utilities.

Provides a content digest for the canonical dataset, so that repeated runs
over unchanged inputs can be compared cheaply.
"""

import hashlib

import pandas as pd


def hash_dataframe(df: pd.DataFrame, columns: list[str] | None = None) -> str:
    """
    Compute deterministic hash of a DataFrame.

    The index is ignored; column order and row order are significant.

    Args:
        df: DataFrame to hash.
        columns: Optional subset of columns to include.

    Returns:
        Hex digest string (first 16 characters of SHA-256).
    """
    if columns:
        df = df[columns]

    hasher = hashlib.sha256()
    hasher.update(f"{df.shape}".encode())
    hasher.update(",".join(map(str, df.columns)).encode())
    hasher.update(pd.util.hash_pandas_object(df, index=False).to_numpy().tobytes())
    return hasher.hexdigest()[:16]
