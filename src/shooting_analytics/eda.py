"""
eda.py
Exploratory report for NYPD Shooting Incident Data

Design principles:
- Every chart is a bar chart of one grouped count from `summary`, so what is
  drawn and what is counted never drift apart
- Styling is an explicit ChartStyle passed to each plot and applied through
  `plt.rc_context`; global rcParams are never touched
- Missing perpetrator information is surfaced as a finding and then modelled
- A model failure (InsufficientData) costs the model section only; the
  charts are still produced
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import matplotlib.pyplot as plt
import matplotlib.ticker as mticker
import pandas as pd
import seaborn as sns

from .data_cleaning import run_pipeline
from .data_collection import DATA_URL
from .errors import InsufficientData
from .modeling import ModelConfig, ModelSummary, fit_perpetrator_model
from .summary import ABSENT_LABEL, GROUPING_COLUMNS, crosstab_counts, summarize_counts

log = logging.getLogger(__name__)


# ── Style ─────────────────────────────────────────────────────────────────────

@dataclass
class ChartStyle:
    palette: str = "YlOrRd"
    accent: str = "#D62728"    # red: the peak bar
    neutral: str = "#4C72B0"   # blue: standard bars
    background: str = "#F7F7F7"
    fig_dir: Path = Path("data/processed/eda/plots")
    dpi: int = 150
    source_note: str = "Source: NYPD Shooting Incident Data (Historic) / data.cityofnewyork.us"
    rc: dict = field(default_factory=lambda: {
        "axes.spines.top":   False,
        "axes.spines.right": False,
        "axes.labelsize":    11,
        "axes.titlesize":    13,
        "axes.titleweight":  "bold",
        "xtick.labelsize":   9,
        "ytick.labelsize":   9,
        "font.family":       "sans-serif",
    })

    def rc_params(self) -> dict:
        return {"figure.facecolor": self.background, "axes.facecolor": self.background, **self.rc}


CHART_LABELS = {
    "Hour":            ("Shootings by Hour of Day", "Hour of Day"),
    "Weekday":         ("Shootings by Day of Week", "Day of Week"),
    "Month":           ("Shootings by Month", "Month"),
    "BORO":            ("Shootings by Borough", "Borough"),
    "PerpInfoPresent": ("Is Any Perpetrator Information Recorded?", "Perpetrator info present"),
}


@dataclass
class ReportResult:
    data: pd.DataFrame
    counts: dict
    model: Optional[ModelSummary]
    figures: list


# ── Helpers ───────────────────────────────────────────────────────────────────

def _save(fig: plt.Figure, name: str, style: ChartStyle) -> Path:
    fig_dir = Path(style.fig_dir)
    fig_dir.mkdir(parents=True, exist_ok=True)
    path = fig_dir / f"{name}.png"
    fig.savefig(path, dpi=style.dpi, bbox_inches="tight")
    plt.close(fig)
    log.info(f"Saved → {path}")
    return path


def _source_note(ax, note: str):
    ax.annotate(note, xy=(0, -0.12), xycoords="axes fraction", fontsize=7, color="gray")


def fmt_thousands(ax, axis="y"):
    fmt = mticker.FuncFormatter(lambda x, _: f"{x:,.0f}")
    if axis == "y":
        ax.yaxis.set_major_formatter(fmt)
    else:
        ax.xaxis.set_major_formatter(fmt)


# ── Charts ────────────────────────────────────────────────────────────────────

def plot_counts(counts: pd.Series, style: ChartStyle, title: Optional[str] = None,
                xlabel: Optional[str] = None) -> plt.Figure:
    """Bar chart of one grouped count, in the order `counts` is given."""
    labels = [str(v) for v in counts.index]
    observed = counts.drop(ABSENT_LABEL, errors="ignore")
    peak = observed.idxmax() if len(observed) else None
    colors = [style.accent if k == peak else style.neutral for k in counts.index]

    with plt.rc_context(style.rc_params()):
        fig, ax = plt.subplots(figsize=(max(6, len(counts) * 0.5), 5))
        ax.bar(range(len(counts)), counts.values, color=colors, edgecolor="white")
        ax.set_xticks(range(len(counts)))
        ax.set_xticklabels(labels, rotation=45 if len(counts) > 7 else 0)
        ax.set_title(title or f"Shootings by {counts.index.name}")
        ax.set_xlabel(xlabel or str(counts.index.name))
        ax.set_ylabel("Number of Shootings")
        fmt_thousands(ax)
        _source_note(ax, style.source_note)
        fig.tight_layout()
    return fig


def plot_weekday_hour_heatmap(table: pd.DataFrame, style: ChartStyle) -> plt.Figure:
    """Q: Which hour × weekday cells concentrate shootings?"""
    with plt.rc_context(style.rc_params()):
        fig, ax = plt.subplots(figsize=(14, 5))
        sns.heatmap(table, ax=ax, cmap=style.palette, linewidths=0.3,
                    cbar_kws={"label": "Number of Shootings"})
        ax.set_title("Shootings by Day of Week and Hour")
        ax.set_xlabel("Hour of Day")
        ax.set_ylabel("")
        fig.tight_layout()
    return fig


def plot_murder_share(df: pd.DataFrame, style: ChartStyle) -> plt.Figure:
    """Q: What share of shootings in each borough were classed as murders?"""
    share = df.groupby("BORO", observed=True)["IsMurder"].mean().astype(float).dropna() * 100
    colors = [style.accent if v == share.max() else style.neutral for v in share.values]

    with plt.rc_context(style.rc_params()):
        fig, ax = plt.subplots(figsize=(8, 5))
        ax.bar(range(len(share)), share.values, color=colors, edgecolor="white")
        ax.set_xticks(range(len(share)))
        ax.set_xticklabels([str(b) for b in share.index])
        ax.set_title("Share of Shootings Classed as Murder, by Borough")
        ax.set_ylabel("% Statistical Murder")
        for i, v in enumerate(share.values):
            ax.text(i, v + 0.3, f"{v:.1f}%", ha="center", fontsize=9)
        _source_note(ax, style.source_note)
        fig.tight_layout()
    return fig


# ── Model Summary ─────────────────────────────────────────────────────────────

def format_model_summary(summary: ModelSummary) -> str:
    banner = "=" * 60
    return "\n".join([banner, "MODEL | PERPETRATOR INFO PRESENT ~ TIME OF DAY + BOROUGH", banner,
                      summary.to_text()])


# ── Report Orchestrator ───────────────────────────────────────────────────────

def run_report(
    source: str = DATA_URL,
    style: Optional[ChartStyle] = None,
    model_config: Optional[ModelConfig] = None,
    on_malformed: str = "raise",
    output_path: Optional[str] = None,
    audit_path: Optional[str] = None,
) -> ReportResult:
    """
    Clean the source, chart every grouped count and fit the model.
    All figures are written to `style.fig_dir`.
    """
    style = style or ChartStyle()
    df = run_pipeline(source, output_path=output_path, audit_path=audit_path,
                      on_malformed=on_malformed)

    counts = summarize_counts(df, GROUPING_COLUMNS)
    figures = []
    for i, (col, col_counts) in enumerate(counts.items(), start=1):
        title, xlabel = CHART_LABELS.get(col, (None, None))
        fig = plot_counts(col_counts, style, title=title, xlabel=xlabel)
        figures.append(_save(fig, f"{i:02d}_counts_{col.lower()}", style))

    heat = crosstab_counts(df, "Weekday", "Hour")
    figures.append(_save(plot_weekday_hour_heatmap(heat, style), "06_weekday_hour", style))

    if "IsMurder" in df.columns:
        figures.append(_save(plot_murder_share(df, style), "07_murder_share_by_borough", style))

    model = None
    try:
        model = fit_perpetrator_model(df, model_config)
        print(format_model_summary(model))
    except InsufficientData as exc:
        log.error(f"Model step skipped: {exc}")

    print("\n" + "=" * 60)
    print(f"✓ REPORT COMPLETE: {len(figures)} figures saved to {style.fig_dir}/")
    print("=" * 60)
    return ReportResult(data=df, counts=counts, model=model, figures=figures)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S",
    )
    run_report(
        DATA_URL,
        output_path="data/processed/shootings_cleaned.csv",
        audit_path="data/cleaning_audit.json",
    )


# ── Entry Point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
