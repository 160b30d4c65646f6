# stdlib
from dataclasses import dataclass
from typing import Dict, Optional, Sequence
# thirdpartylib
import numpy as np
import pandas as pd

# Metrics compared when choosing a model; all are better when lower
SELECTION_METRICS = ("ME", "RMSE", "MAE", "MPE", "MAPE", "winkler", "CRPS")
# Signed metrics are compared by magnitude
SIGNED_METRICS = frozenset({"ME", "MPE"})
TIE_BREAKER = "MAPE"


@dataclass(frozen=True)
class ModelSelection:
    model: str
    wins: Dict[str, int]
    rationale: str


def select_model(
        table: pd.DataFrame,
        *,
        metrics: Optional[Sequence[str]] = None,
        tie_breaker: str = TIE_BREAKER,
    ) -> ModelSelection:
    """
    Pick the preferred model from an accuracy table.

    Each metric awards one win to the model that does best on it
    (smallest value, or smallest magnitude for signed metrics such as
    ME and MPE). The model with the most wins is preferred. When the
    metrics conflict so that several models share the most wins, the
    one with the lowest ``tie_breaker`` value (MAPE by default) is
    chosen.

    A model that beats every other model on every metric therefore
    always wins.

    Parameters
    ----------
    table : pd.DataFrame
        One row per model (index) and one column per metric.
    metrics : Sequence[str], optional
        Metrics to compare; defaults to those of ``SELECTION_METRICS``
        present in ``table``.
    tie_breaker : str, default "MAPE"
        Metric used to resolve ties in the win count.

    Returns
    -------
    ModelSelection
    """
    if table.empty:
        raise ValueError("Cannot select a model from an empty table.")
    if metrics is None:
        metrics = [m for m in SELECTION_METRICS if m in table.columns]
    if not metrics:
        raise ValueError("No comparable metrics in the accuracy table.")
    wins = {str(model): 0 for model in table.index}
    for metric in metrics:
        values = table[metric].astype(np.float64)
        if metric in SIGNED_METRICS:
            values = values.abs()
        if values.isna().all():
            continue
        wins[str(values.idxmin())] += 1
    most = max(wins.values())
    leaders = [m for m, w in wins.items() if w == most]
    if len(leaders) == 1:
        chosen = leaders[0]
        rationale = (
            f"{chosen} is best on {most} of {len(metrics)} metrics."
        )
    else:
        scores = table.loc[leaders, tie_breaker].astype(np.float64).abs()
        chosen = str(scores.idxmin())
        rationale = (
            f"{', '.join(leaders)} tie on {most} wins each; "
            f"{chosen} has the lowest {tie_breaker} "
            f"({scores[chosen]:.2f})."
        )
    return ModelSelection(model=chosen, wins=wins, rationale=rationale)
