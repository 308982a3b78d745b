"""
Exploratory Data Analysis (EDA) Module
=======================================

Renders the observation views as figures.

Functions:
    - plot_time_series: Stacked overlays of the measurements over time
    - plot_seasonal: Monthly profile per year, faceted by interval bucket
    - plot_seasonal_decomposition: Trend / seasonal / residual components
    - plot_scatter: Scatter or hexbin view of two measurements
    - plot_correlation_matrix: Correlation heatmap
    - plot_distributions: Histograms with normality tests
    - plot_min_max: Yearly minimum and maximum band
    - plot_lag_differences: Lag-N differences with highlighted jumps
    - generate_eda_report: Full EDA report with all visualizations
"""

import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Sequence, Tuple

import pandas as pd
import numpy as np
import matplotlib.pyplot as plt
import seaborn as sns
from scipy import stats

from .preprocessing import NUMERIC_COLUMNS
from . import views

logger = logging.getLogger(__name__)

# Set style for all plots
plt.style.use('seaborn-v0_8-whitegrid')
sns.set_palette("husl")

UNITS = {
    'level': 'm',
    'salinity': 'µS/cm',
    'temperature': '°C',
}


def _label(column: str) -> str:
    unit = UNITS.get(column)
    return f'{column.capitalize()} ({unit})' if unit else column


def _save(fig: plt.Figure, save_path: Optional[str], what: str) -> None:
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
        logger.info(f"{what} saved to {save_path}")


def plot_time_series(
    obs: pd.DataFrame,
    columns: Optional[List[str]] = None,
    start: Optional[Any] = None,
    end: Optional[Any] = None,
    after_year: Optional[int] = None,
    figsize: Tuple[int, int] = (14, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot each measurement over time in stacked panels sharing the date axis.

    Args:
        obs: Prepared observations
        columns: Measurements to plot (default: level, salinity, temperature)
        start, end: Optional inclusive date range
        after_year: Optional year threshold
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Matplotlib Figure object
    """
    if columns is None:
        columns = list(NUMERIC_COLUMNS)

    fig, axes = plt.subplots(len(columns), 1, figsize=figsize, sharex=True, squeeze=False)
    axes = axes.flatten()

    for ax, col in zip(axes, columns):
        view = views.time_series_view(obs, col, start=start, end=end, after_year=after_year)
        ax.plot(view.x, view.y, linewidth=0.6, alpha=0.9)

        # 365-row rolling mean shows the long-term drift
        if len(view) > 365:
            ax.plot(view.x, view.y.rolling(365, min_periods=180).mean(),
                    color='red', linewidth=1.2, label='Rolling mean (365)')
            ax.legend(loc='upper right', fontsize=8)

        ax.set_title(f'{col}', fontsize=12, fontweight='bold')
        ax.set_ylabel(_label(col))

    axes[-1].set_xlabel('Date')
    fig.suptitle('Station Time Series', fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Time series plot")
    return fig


def plot_seasonal(
    obs: pd.DataFrame,
    column: str,
    after_year: Optional[int] = None,
    col_wrap: int = 2,
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot the monthly profile of every year, one panel per interval bucket.

    Args:
        obs: Prepared observations
        column: Measurement to plot
        after_year: Optional year threshold
        col_wrap: Panels per row
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    view = views.seasonal_view(obs, column, after_year=after_year)
    data = view.to_frame().rename(columns={'group': 'year', 'facet': 'interval'})

    grid = sns.relplot(
        data=data,
        x='x',
        y='y',
        hue='year',
        col='interval',
        kind='line',
        col_wrap=col_wrap,
        palette='viridis',
        height=3.5,
        aspect=1.4,
        linewidth=0.8,
        alpha=0.7,
    )
    grid.set_axis_labels('Month', _label(column))
    grid.set(xticks=range(1, 13))
    grid.figure.suptitle(f'Seasonal Profile: {column}', fontsize=14, fontweight='bold', y=1.02)

    _save(grid.figure, save_path, "Seasonal plot")
    return grid.figure


def plot_seasonal_decomposition(
    obs: pd.DataFrame,
    column: str,
    period: int = 12,
    figsize: Tuple[int, int] = (14, 10),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot observed, trend, seasonal and residual components of the monthly series.

    Raises:
        ValueError: If the series is too short to decompose
    """
    decomposition = views.seasonal_decomposition(obs, column, period=period)

    fig, axes = plt.subplots(4, 1, figsize=figsize, sharex=True)
    components = [
        ('Observed', decomposition.observed, 'tab:blue'),
        ('Trend', decomposition.trend, 'tab:green'),
        ('Seasonal', decomposition.seasonal, 'tab:orange'),
        ('Residual', decomposition.resid, 'tab:gray'),
    ]
    for ax, (title, series, color) in zip(axes, components):
        ax.plot(series.index, series.values, color=color, linewidth=0.8)
        ax.set_title(f'{title} Component', fontsize=10, fontweight='bold')
        ax.set_ylabel(_label(column))

    axes[-1].set_xlabel('Date')
    fig.suptitle(f'Seasonal Decomposition: {column} (period={period} months)',
                 fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Seasonal decomposition")
    return fig


def plot_scatter(
    obs: pd.DataFrame,
    x: str,
    y: str,
    kind: str = 'scatter',
    after_year: Optional[int] = None,
    figsize: Tuple[int, int] = (9, 7),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot two measurements against each other.

    Args:
        obs: Prepared observations
        x, y: Measurement columns
        kind: 'scatter' (coloured by interval) or 'hexbin' (density)
        after_year: Optional year threshold
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if kind not in ('scatter', 'hexbin'):
        raise ValueError(f"Unknown plot kind: {kind}. Choose from: scatter, hexbin")

    view = views.scatter_view(obs, x, y, after_year=after_year)
    fig, ax = plt.subplots(figsize=figsize)

    if kind == 'hexbin':
        hb = ax.hexbin(view.x, view.y, gridsize=40, cmap='viridis', mincnt=1)
        fig.colorbar(hb, ax=ax, label='Count')
    else:
        sns.scatterplot(x=view.x, y=view.y, hue=view.group, s=8, alpha=0.5,
                        linewidth=0, ax=ax)
        ax.legend(title='Interval', fontsize=8)

    ax.set_xlabel(_label(x))
    ax.set_ylabel(_label(y))
    ax.set_title(f'{y} vs {x} ({kind})', fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, f"{kind.capitalize()} plot")
    return fig


def plot_correlation_matrix(
    obs: pd.DataFrame,
    method: str = 'pearson',
    figsize: Tuple[int, int] = (8, 6),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Create a correlation heatmap for the measurements.

    Args:
        obs: Prepared observations
        method: Correlation method ('pearson', 'spearman', 'kendall')
        figsize: Figure size (width, height)
        save_path: Path to save the figure (optional)

    Returns:
        Tuple of (Figure, correlation matrix DataFrame)
    """
    corr_matrix = views.correlation_matrix(obs, method=method)

    fig, ax = plt.subplots(figsize=figsize)

    mask = np.triu(np.ones_like(corr_matrix, dtype=bool), k=1)
    sns.heatmap(
        corr_matrix,
        mask=mask,
        annot=True,
        fmt='.3f',
        cmap='RdYlBu_r',
        center=0,
        square=True,
        linewidths=0.5,
        cbar_kws={"shrink": 0.8, "label": "Correlation"},
        ax=ax,
        vmin=-1,
        vmax=1
    )

    ax.set_title(f'Correlation Matrix ({method.capitalize()})',
                 fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Correlation matrix")
    return fig, corr_matrix


def plot_distributions(
    obs: pd.DataFrame,
    columns: Optional[List[str]] = None,
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Create distribution plots (histogram + KDE) for the measurements.

    Args:
        obs: Prepared observations
        columns: Measurements to plot
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if columns is None:
        columns = list(NUMERIC_COLUMNS)

    fig, axes = plt.subplots(1, len(columns), figsize=figsize, squeeze=False)
    axes = axes.flatten()

    for ax, col in zip(axes, columns):
        values = obs[col].dropna()
        if values.empty:
            ax.set_title(f'{col} (no data)', fontsize=10, fontweight='bold')
            continue

        sns.histplot(values, kde=len(values) > 1, ax=ax, bins=50, alpha=0.7)

        mean_val = values.mean()
        median_val = values.median()
        ax.axvline(mean_val, color='red', linestyle='--', label=f'Mean: {mean_val:.2f}')
        ax.axvline(median_val, color='green', linestyle='--', label=f'Median: {median_val:.2f}')

        # normaltest needs at least 8 samples
        if len(values) >= 8:
            _, p_value = stats.normaltest(values)
            normality = "Normal" if p_value > 0.05 else "Non-Normal"
            ax.set_title(f'{col} ({normality}, p={p_value:.3f})', fontsize=10, fontweight='bold')
        else:
            ax.set_title(f'{col}', fontsize=10, fontweight='bold')
        ax.set_xlabel(_label(col))
        ax.legend(fontsize=8)

    fig.suptitle('Distribution Analysis', fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Distribution plots")
    return fig


def plot_min_max(
    obs: pd.DataFrame,
    column: str = 'temperature',
    figsize: Tuple[int, int] = (14, 5),
    save_path: Optional[str] = None
) -> Tuple[plt.Figure, pd.DataFrame]:
    """
    Plot yearly minimum and maximum of a measurement as a band.

    Returns:
        Tuple of (Figure, min/max summary DataFrame)
    """
    summary = views.min_max_by_year(obs, column)

    fig, ax = plt.subplots(figsize=figsize)
    ax.fill_between(summary.index, summary['min'], summary['max'], alpha=0.2, color='tab:blue')
    ax.plot(summary.index, summary['max'], color='tab:red', marker='.', label='Max')
    ax.plot(summary.index, summary['min'], color='tab:blue', marker='.', label='Min')

    ax.set_xlabel('Year')
    ax.set_ylabel(_label(column))
    ax.set_title(f'Yearly Min / Max: {column}', fontsize=14, fontweight='bold')
    ax.legend(loc='upper right')
    fig.tight_layout()

    _save(fig, save_path, "Min/max plot")
    return fig, summary


def plot_lag_differences(
    obs: pd.DataFrame,
    columns: Sequence[str] = ('level', 'temperature'),
    lag: int = views.DEFAULT_LAG,
    threshold: Optional[float] = None,
    after_year: Optional[int] = None,
    figsize: Tuple[int, int] = (14, 8),
    save_path: Optional[str] = None
) -> plt.Figure:
    """
    Plot lag-N differences, highlighting changes larger than ``threshold``.

    Args:
        obs: Prepared observations in ascending date order
        columns: Measurements to difference
        lag: Offset in rows
        threshold: Absolute change above which points are highlighted
        after_year: Optional year threshold applied before differencing
        figsize: Figure size
        save_path: Path to save the figure

    Returns:
        Matplotlib Figure object
    """
    if after_year is not None:
        obs = views.filter_after_year(obs, after_year)

    highlight = None
    if threshold is not None:
        def highlight(diffs: pd.Series) -> pd.Series:
            return diffs.abs() > threshold

    fig, axes = plt.subplots(len(columns), 1, figsize=figsize, sharex=True, squeeze=False)
    axes = axes.flatten()

    for ax, col in zip(axes, columns):
        view = views.lag_view(obs, col, lag=lag, highlight=highlight)
        ax.plot(view.x, view.y, linewidth=0.6, alpha=0.8)
        ax.axhline(y=0, color='k', linestyle='-', linewidth=0.5)

        if view.highlight is not None and view.highlight.any():
            ax.scatter(view.x[view.highlight], view.y[view.highlight],
                       color='red', s=10, zorder=5, label=f'|Δ| > {threshold}')
            ax.legend(loc='upper right', fontsize=8)

        ax.set_title(view.name, fontsize=10, fontweight='bold')
        ax.set_ylabel(view.y_label)

    axes[-1].set_xlabel('Date')
    fig.suptitle(f'Lag-{lag} Differences', fontsize=14, fontweight='bold')
    fig.tight_layout()

    _save(fig, save_path, "Lag difference plot")
    return fig


def generate_eda_report(
    obs: pd.DataFrame,
    output_dir: str = "reports/figures/",
    config: Optional[Dict[str, Any]] = None,
    show_plots: bool = False
) -> Dict[str, Any]:
    """
    Generate a complete EDA report with all visualizations.

    Args:
        obs: Prepared observations
        output_dir: Directory to save figures
        config: Configuration dictionary (uses the 'analysis' section)
        show_plots: Whether to display plots interactively

    Returns:
        Dictionary containing EDA results and file paths
    """
    analysis = (config or {}).get('analysis', {})
    lag = analysis.get('lag', views.DEFAULT_LAG)
    after_year = analysis.get('year_threshold')
    period = analysis.get('decomposition_period', 12)
    seasonal_columns = analysis.get('seasonal_columns', ['level', 'temperature'])
    scatter_pairs = analysis.get('scatter_pairs', [['temperature', 'level']])
    lag_threshold = analysis.get('lag_threshold')

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report = {
        "data_shape": obs.shape,
        "columns": list(obs.columns),
        "figures": [],
        "skipped": [],
        "correlation_matrix": None,
        "min_max": None,
        "statistics": {}
    }

    logger.info("=" * 60)
    logger.info("STARTING EXPLORATORY DATA ANALYSIS")
    logger.info("=" * 60)

    figure_number = 0

    def next_name(stem: str) -> str:
        nonlocal figure_number
        figure_number += 1
        return f"{figure_number:02d}_{stem}.png"

    def skip(name: str, reason: str) -> None:
        logger.warning(f"Skipping {name}: {reason}")
        report["skipped"].append(name)

    if obs.empty:
        skip("all figures", "no observations")
        return report

    # 1. Time series overlays
    logger.info("Generating time series plots...")
    name = next_name("time_series")
    plot_time_series(obs, save_path=str(output_dir / name))
    report["figures"].append(name)

    if after_year is not None:
        name = next_name(f"time_series_after_{after_year}")
        if views.filter_after_year(obs, after_year).empty:
            skip(name, f"no observations after {after_year}")
        else:
            plot_time_series(obs, after_year=after_year, save_path=str(output_dir / name))
            report["figures"].append(name)

    # 2. Seasonal profiles
    logger.info("Generating seasonal plots...")
    for col in seasonal_columns:
        name = next_name(f"seasonal_{col}")
        if views.seasonal_view(obs, col).empty:
            skip(name, f"no {col} values")
            continue
        plot_seasonal(obs, col, save_path=str(output_dir / name))
        report["figures"].append(name)

    # 3. Seasonal decomposition
    logger.info("Decomposing monthly series...")
    for col in seasonal_columns:
        name = next_name(f"decomposition_{col}")
        try:
            plot_seasonal_decomposition(obs, col, period=period, save_path=str(output_dir / name))
        except ValueError as e:
            skip(name, str(e))
            continue
        report["figures"].append(name)

    # 4. Scatter and hexbin views
    logger.info("Generating correlation views...")
    for x, y in scatter_pairs:
        pair_empty = views.scatter_view(obs, x, y, after_year=after_year).empty
        for kind in ('scatter', 'hexbin'):
            name = next_name(f"{kind}_{y}_vs_{x}")
            if pair_empty:
                skip(name, f"no rows with both {x} and {y}")
                continue
            plot_scatter(obs, x, y, kind=kind, after_year=after_year,
                         save_path=str(output_dir / name))
            report["figures"].append(name)

    # 5. Correlation matrix
    logger.info("Computing correlation matrix...")
    name = next_name("correlation_matrix")
    _, corr_matrix = plot_correlation_matrix(obs, save_path=str(output_dir / name))
    report["figures"].append(name)
    report["correlation_matrix"] = corr_matrix.to_dict()

    # 6. Distributions
    logger.info("Plotting distributions...")
    name = next_name("distributions")
    plot_distributions(obs, save_path=str(output_dir / name))
    report["figures"].append(name)

    # 7. Min / max per year
    logger.info("Summarising yearly extremes...")
    name = next_name("min_max_temperature")
    if obs['temperature'].notna().any():
        _, summary = plot_min_max(obs, 'temperature', save_path=str(output_dir / name))
        report["figures"].append(name)
        report["min_max"] = summary.to_dict(orient='index')
    else:
        skip(name, "no temperature values")

    # 8. Lag differences
    logger.info(f"Computing lag-{lag} differences...")
    name = next_name(f"lag{lag}_differences")
    if len(obs) <= lag:
        skip(name, f"{len(obs)} observations is not more than lag {lag}")
    else:
        plot_lag_differences(obs, lag=lag, threshold=lag_threshold,
                             save_path=str(output_dir / name))
        report["figures"].append(name)

    for col in NUMERIC_COLUMNS:
        values = obs[col].dropna()
        if values.empty:
            continue
        report["statistics"][col] = {
            "mean": float(values.mean()),
            "std": float(values.std()),
            "min": float(values.min()),
            "max": float(values.max()),
            "skew": float(values.skew()),
            "kurtosis": float(values.kurtosis())
        }

    if show_plots:
        plt.show()
    else:
        plt.close('all')

    logger.info("=" * 60)
    logger.info("EDA COMPLETE - All figures saved to: %s", output_dir)
    logger.info("=" * 60)

    return report


def print_correlation_insights(corr_matrix: pd.DataFrame, threshold: float = 0.5) -> None:
    """
    Print insights about strongly correlated measurements.

    Args:
        corr_matrix: Correlation matrix DataFrame
        threshold: Correlation threshold for "strong" correlation
    """
    print("\n" + "=" * 50)
    print("CORRELATION INSIGHTS")
    print("=" * 50)

    strong_corr = []
    for i in range(len(corr_matrix.columns)):
        for j in range(i + 1, len(corr_matrix.columns)):
            corr_val = corr_matrix.iloc[i, j]
            if pd.notna(corr_val) and abs(corr_val) >= threshold:
                strong_corr.append({
                    "col1": corr_matrix.columns[i],
                    "col2": corr_matrix.columns[j],
                    "correlation": corr_val
                })

    if strong_corr:
        print(f"\nStrong correlations (|r| >= {threshold}):")
        for item in sorted(strong_corr, key=lambda x: abs(x["correlation"]), reverse=True):
            direction = "positive" if item["correlation"] > 0 else "negative"
            print(f"  • {item['col1']} ↔ {item['col2']}: {item['correlation']:.3f} ({direction})")
    else:
        print(f"\nNo strong correlations found (|r| >= {threshold})")

    print("=" * 50 + "\n")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    from .preprocessing import ObservationPreparer

    # Synthetic daily record with an annual cycle
    np.random.seed(42)
    dates = pd.date_range('1975-01-01', '1984-12-31', freq='D')
    day = np.arange(len(dates))
    season = np.sin(2 * np.pi * day / 365.25)

    raw = pd.DataFrame({
        'timestamp': ['00:00 ' + d.strftime('%d/%m/%Y') for d in dates],
        'level': (1.5 + 0.3 * season + 0.05 * np.random.randn(len(dates))).round(3).astype(str),
        'salinity': (400 - 30 * season + 5 * np.random.randn(len(dates))).round(1).astype(str),
        'temperature': (12 + 8 * season + np.random.randn(len(dates))).round(2).astype(str),
    })

    observations, _ = ObservationPreparer(origin='sample-station').prepare(raw)

    print("Running EDA on sample data...")
    report = generate_eda_report(observations, show_plots=False)
    print_correlation_insights(pd.DataFrame(report["correlation_matrix"]))
    print(f"Generated {len(report['figures'])} figures")
