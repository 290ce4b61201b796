"""
formatting.py
-------------
Number formatting helpers for Streamlit tables and charts.

Model percentages are whole-number percents (9.5 = 9.5%), so fmt_pct
does not multiply by 100.
"""

import numpy as np
import pandas as pd


def fmt_millions(val, decimals: int = 1) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"${val:,.{decimals}f}M"


def fmt_pct(val, decimals: int = 1) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"{val:.{decimals}f}%"


def fmt_ratio_pct(val, decimals: int = 1) -> str:
    """For 0-1 ratios (e.g. FCF / EBITDA)."""
    if val is None or pd.isna(val):
        return "—"
    return f"{val:.{decimals}%}"


def fmt_multiple(val, decimals: int = 2) -> str:
    if val is None or pd.isna(val):
        return "—"
    return f"{val:.{decimals}f}x"


def fmt_irr(val) -> str:
    if val is None or (isinstance(val, float) and np.isnan(val)):
        return "N/A"
    return f"{val:.2f}%"


def fmt_column(col: str, val) -> str:
    """Pick a formatter from the column label convention."""
    if "($M)" in col:
        return fmt_millions(val)
    if col.endswith("(x)"):
        return fmt_multiple(val)
    if col.endswith("%"):
        return fmt_pct(val)
    if isinstance(val, float):
        return f"{val:,.2f}"
    return val


def format_table(df: pd.DataFrame) -> pd.DataFrame:
    """Format any labelled table: $M, x and % columns by suffix."""
    out = df.copy().astype(object)
    for col in df.columns:
        out[col] = [fmt_column(col, v) for v in df[col]]
    return out


def format_projection_df(df: pd.DataFrame) -> pd.DataFrame:
    """Projection table transposed to line items × periods, formatted."""
    out = format_table(df).T
    out.index.name = "Line Item"
    return out


# ---------------------------------------------------------------------------
# Status colouring
# ---------------------------------------------------------------------------

STATUS_STYLE = {
    "breach":   "background-color: #c0392b; color: white",
    "tight":    "background-color: #e67e22; color: white",
    "watch":    "background-color: #f1c40f; color: black",
    "healthy":  "background-color: #2ecc71; color: black",
    "low":      "background-color: #2ecc71; color: black",
    "medium":   "background-color: #f1c40f; color: black",
    "high":     "background-color: #e67e22; color: white",
    "critical": "background-color: #c0392b; color: white",
}


def style_status_column(df: pd.DataFrame, column: str):
    """Colour a status / risk-level column; returns a pandas Styler."""
    def color(val):
        return STATUS_STYLE.get(val, "")
    return df.style.apply(
        lambda col: [color(v) for v in col] if col.name == column else [""] * len(col),
        axis=0,
    )
