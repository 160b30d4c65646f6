# stdlib
from pathlib import Path
from typing import Iterable, Optional, Sequence
# thirdpartylib
import polars as pl
import pandas as pd
import matplotlib.pyplot as plt
import matplotlib as mpl
from cycler import cycler
from matplotlib.axes import Axes
from matplotlib.figure import Figure
# projectlib
from grid_mix_forecasting.utils.typing import Address, DataFrame
from grid_mix_forecasting.utils.paths import validate_address
from grid_mix_forecasting.config.constants import POWER_UNIT
from grid_mix_forecasting.data.schemas import Column
from grid_mix_forecasting.models.forecasting import Forecast


def use_dark_theme() -> None:
    """
    Apply a shadcn-inspired dark theme to Matplotlib.

    This function updates Matplotlib's global rcParams to use a dark
    color palette with subtle gridlines, muted text, and a modern line
    color cycle suitable for time-series and dashboard-style plots.
    """
    mpl.rcParams.update({
        "figure.facecolor": "#0a0a0a",
        "axes.facecolor": "#171717",
        "axes.edgecolor": "#ffffff1a",
        "axes.labelcolor": "#fafafa",
        "axes.titlecolor": "#fafafa",
        "grid.color": "#ffffff1a",
        "grid.alpha": 0.4,
        "grid.linewidth": 0.2,
        "xtick.color": "#a1a1a1",
        "ytick.color": "#a1a1a1",
        "lines.linewidth": 1.6,
        "text.color": "#e5e7eb",
        "legend.edgecolor": "#ffffff1a",
        "legend.facecolor": "#171717",
        "legend.fontsize": 9,
        "legend.frameon": True,
        "axes.grid": True,
        "axes.prop_cycle": cycler(color=[
            "#1447e6",
            "#00bc7d",
            "#fe9a00",
            "#ad46ff",
            "#ff2056",
        ]),
    })

def _as_pandas(data: DataFrame, on: str) -> pd.DataFrame:
    """Materialize polars input as a pandas frame indexed by ``on``."""
    if isinstance(data, pl.LazyFrame):
        data = data.collect()
    if isinstance(data, pl.DataFrame):
        frame = pd.DataFrame(data.to_dict(as_series=False))
        frame[on] = pd.to_datetime(frame[on])
        return frame.set_index(on)
    return data

def plot_series_comparison(
        data: DataFrame,
        columns: Sequence[str],
        *,
        on: str = Column.DATE,
        ax: Optional[Axes] = None,
        title: Optional[str] = None,
    ) -> Axes:
    """
    Overlay several columns of a time-indexed frame on one axis.

    Parameters
    ----------
    data : pandas.DataFrame | polars.DataFrame | polars.LazyFrame
        Either a pandas frame indexed by period or a polars frame with
        an ``on`` column.
    columns : Sequence[str]
        Columns to draw, one line each.
    on : str, default "date"
        Period column of polars input.
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new figure is created if omitted.
    title : str, optional
        Axes title.

    Returns
    -------
    matplotlib.axes.Axes
    """
    frame = _as_pandas(data, on)
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise KeyError(f"Columns not in frame: {missing}")
    if ax is None:
        _, ax = plt.subplots() # pyright: ignore[reportUnknownMemberType]
    for column in columns:
        ax.plot( # pyright: ignore[reportUnknownMemberType]
            frame.index,
            frame[column],
            label=str(column),
        )
    ax.set_ylabel(POWER_UNIT) # pyright: ignore[reportUnknownMemberType]
    if title is not None:
        ax.set_title(title) # pyright: ignore[reportUnknownMemberType]
    if len(columns) > 1:
        ax.legend() # pyright: ignore[reportUnknownMemberType]
    return ax

def plot_forecasts(
        history: pd.Series,
        forecasts: Iterable[Forecast],
        *,
        actual: Optional[pd.Series] = None,
        ax: Optional[Axes] = None,
        title: Optional[str] = None,
    ) -> Axes:
    """
    Draw the observed series followed by one forecast fan per model.

    Each forecast is a mean line with its prediction interval shaded
    in the same color. ``actual`` (e.g. the holdout window) is drawn
    over the fans when given.
    """
    if ax is None:
        _, ax = plt.subplots() # pyright: ignore[reportUnknownMemberType]
    ax.plot( # pyright: ignore[reportUnknownMemberType]
        history.index,
        history.to_numpy(),
        label="observed",
        color="#fafafa",
    )
    for forecast in forecasts:
        frame = forecast.frame
        line, = ax.plot( # pyright: ignore[reportUnknownMemberType]
            frame.index,
            frame["mean"],
            label=forecast.model,
        )
        ax.fill_between( # pyright: ignore[reportUnknownMemberType]
            frame.index,
            frame["lower"],
            frame["upper"],
            color=line.get_color(),
            alpha=0.15,
        )
    if actual is not None:
        ax.plot( # pyright: ignore[reportUnknownMemberType]
            actual.index,
            actual.to_numpy(),
            label="actual",
            color="#a1a1a1",
            linestyle="--",
        )
    ax.set_ylabel(str(history.name or "")) # pyright: ignore
    if title is not None:
        ax.set_title(title) # pyright: ignore[reportUnknownMemberType]
    ax.legend() # pyright: ignore[reportUnknownMemberType]
    return ax

def plot_decomposition(
        components: pd.DataFrame,
        *,
        title: Optional[str] = None,
    ) -> Figure:
    """One panel per STL component, sharing the time axis."""
    fig, axes = plt.subplots( # pyright: ignore[reportUnknownMemberType]
        len(components.columns),
        1,
        sharex=True,
        figsize=(9, 2 * len(components.columns)),
    )
    for ax, column in zip(axes, components.columns):
        ax.plot(components.index, components[column])
        ax.set_ylabel(str(column))
    if title is not None:
        fig.suptitle(title) # pyright: ignore[reportUnknownMemberType]
    fig.tight_layout()
    return fig

def save_figure(fig: Figure, address: Address) -> Path:
    """Write ``fig`` as PNG without overwriting, then close it."""
    path = validate_address(address, extension=".png", mode="w")
    fig.savefig(path, dpi=150) # pyright: ignore[reportUnknownMemberType]
    plt.close(fig)
    return path
