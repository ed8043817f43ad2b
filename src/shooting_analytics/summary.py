"""
summary.py
Grouped incident counts over the cleaned table (the inputs to every bar chart).

Categorical columns are reported densely: every declared category appears,
in declared order, with an explicit zero where nothing was observed. Absent
values are counted under ABSENT_LABEL so the counts always add up to the
number of rows.
"""

import pandas as pd

from .errors import SchemaMismatch

GROUPING_COLUMNS = ("Hour", "Weekday", "Month", "BORO", "PerpInfoPresent")

ABSENT_LABEL = "(absent)"


def grouped_counts(df: pd.DataFrame, column: str, dense: bool = True) -> pd.Series:
    if column not in df.columns:
        raise SchemaMismatch({column})

    values = df[column]
    counts = values.dropna().value_counts(sort=False)
    if isinstance(values.dtype, pd.CategoricalDtype):
        counts = counts.reindex(values.cat.categories, fill_value=0)
    elif pd.api.types.is_bool_dtype(values.dtype):
        counts = counts.reindex([False, True], fill_value=0)
    else:
        counts = counts.sort_index()

    if not dense:
        counts = counts[counts > 0]

    n_absent = int(values.isna().sum())
    if n_absent:
        counts = pd.concat([counts, pd.Series({ABSENT_LABEL: n_absent})])

    counts = counts.astype(int)
    counts.index.name = column
    counts.name = "count"
    return counts


def summarize_counts(df: pd.DataFrame, columns=GROUPING_COLUMNS, dense: bool = True) -> dict:
    return {col: grouped_counts(df, col, dense=dense) for col in columns}


def crosstab_counts(df: pd.DataFrame, rows: str, cols: str) -> pd.DataFrame:
    """Dense rows × cols count table, e.g. Weekday × Hour for a heat map."""
    missing = {rows, cols} - set(df.columns)
    if missing:
        raise SchemaMismatch(missing)

    table = pd.crosstab(df[rows], df[cols], dropna=False)
    for axis, col in ((0, rows), (1, cols)):
        if isinstance(df[col].dtype, pd.CategoricalDtype):
            table = table.reindex(df[col].cat.categories, axis=axis, fill_value=0)
    table.index.name, table.columns.name = rows, cols
    return table
