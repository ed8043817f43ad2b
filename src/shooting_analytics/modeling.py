"""
modeling.py
Linear probability model: does perpetrator information go missing more often
at certain times of day or in certain boroughs?

PerpInfoPresent (0/1) ~ TimeOfDay + BORO, fitted by ordinary least squares.
Indicator coding is done here explicitly rather than through a formula
parser, so the reference category of each predictor is a visible setting
(`ModelConfig.reference`) instead of a side effect of category ordering.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np
import pandas as pd
import statsmodels.api as sm

from .errors import InsufficientData, SchemaMismatch

log = logging.getLogger(__name__)


@dataclass
class ModelConfig:
    """
    response   : 0/1 column to predict
    predictors : categorical columns expanded into indicators
    reference  : per-predictor reference category; predictors without an
                 entry use their first observed category in declared order
    """
    response: str = "PerpInfoPresent"
    predictors: tuple = ("TimeOfDay", "BORO")
    reference: dict = field(default_factory=lambda: {"TimeOfDay": "Afternoon"})


@dataclass
class ModelSummary:
    formula: str
    coefficients: pd.DataFrame
    r_squared: float
    adj_r_squared: float
    nobs: int
    references: dict
    result: Any = field(default=None, repr=False)

    def to_text(self) -> str:
        ref_text = ", ".join(f"{k}={v}" for k, v in self.references.items())
        lines = [
            f"OLS  {self.formula}",
            f"Reference categories: {ref_text}",
            f"Observations: {self.nobs:,}",
            "",
            self.coefficients.to_string(float_format=lambda v: f"{v:.4f}"),
            "",
            f"R-squared: {self.r_squared:.4f}   Adj. R-squared: {self.adj_r_squared:.4f}",
        ]
        return "\n".join(lines)


def _observed_levels(series: pd.Series) -> list:
    observed = set(series.dropna().unique())
    if isinstance(series.dtype, pd.CategoricalDtype):
        return [c for c in series.cat.categories if c in observed]
    return sorted(observed, key=str)


def indicator_matrix(df: pd.DataFrame, config: ModelConfig):
    """
    Treatment-code each predictor against its reference category.

    Returns (X, references) where X has an Intercept column followed by one
    `<predictor>[T.<level>]` column per non-reference observed level.
    """
    X = pd.DataFrame({"Intercept": np.ones(len(df))}, index=df.index)
    references = {}

    for pred in config.predictors:
        levels = _observed_levels(df[pred])
        if len(levels) < 2:
            raise InsufficientData(
                f"{pred} has {len(levels)} observed categories {levels}; at least 2 are needed")

        ref = config.reference.get(pred, levels[0])
        if ref not in levels:
            raise InsufficientData(
                f"Reference category {ref!r} for {pred} is not observed (observed: {levels})")
        references[pred] = ref

        for level in levels:
            if level != ref:
                X[f"{pred}[T.{level}]"] = (df[pred] == level).astype(float)

    return X, references


def fit_perpetrator_model(df: pd.DataFrame, config: Optional[ModelConfig] = None) -> ModelSummary:
    config = config or ModelConfig()
    needed = [config.response, *config.predictors]
    missing = set(needed) - set(df.columns)
    if missing:
        raise SchemaMismatch(missing)

    if len(df) == 0:
        raise InsufficientData("Cannot fit a model on an empty table")

    usable = df[needed].notna().all(axis=1)
    excluded = int((~usable).sum())
    if excluded:
        log.warning(f"Excluding {excluded:,} rows with an absent response or predictor")
    data = df[usable]
    if data.empty:
        raise InsufficientData("Every row has an absent response or predictor")

    X, references = indicator_matrix(data, config)
    y = data[config.response].astype(float)

    rank = np.linalg.matrix_rank(X.to_numpy())
    if rank < X.shape[1]:
        raise InsufficientData(
            f"Indicator matrix is rank deficient ({rank} of {X.shape[1]} columns); "
            f"predictors {list(config.predictors)} are collinear in this data")
    if len(data) <= X.shape[1]:
        raise InsufficientData(
            f"{len(data)} rows leave no residual degrees of freedom for {X.shape[1]} parameters")

    # coefficients come from the QR factors of X, not the normal equations
    result = sm.OLS(y, X).fit(method="qr")

    coefficients = pd.DataFrame({
        "estimate": result.params,
        "std_error": result.bse,
        "t_value": result.tvalues,
        "p_value": result.pvalues,
    })
    terms = " + ".join(f"C({p}, Treatment({references[p]!r}))" for p in config.predictors)
    summary = ModelSummary(
        formula=f"{config.response} ~ {terms}",
        coefficients=coefficients,
        r_squared=float(result.rsquared),
        adj_r_squared=float(result.rsquared_adj),
        nobs=int(result.nobs),
        references=references,
        result=result,
    )
    log.info(f"Fitted {summary.formula} on {summary.nobs:,} rows, R² = {summary.r_squared:.4f}")
    return summary
