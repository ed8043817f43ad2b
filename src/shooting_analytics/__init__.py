"""NYPD shooting incident analysis: cleaning pipeline, grouped counts and a perpetrator-info model."""

from .data_cleaning import clean_incidents, run_pipeline
from .data_collection import DATA_URL, load_incidents
from .errors import (
    AnalysisError,
    InsufficientData,
    MalformedValue,
    SchemaMismatch,
    SourceUnavailable,
)
from .modeling import ModelConfig, ModelSummary, fit_perpetrator_model
from .summary import grouped_counts, summarize_counts

__version__ = "0.1.0"
