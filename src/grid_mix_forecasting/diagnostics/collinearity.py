# stdlib
from dataclasses import dataclass
from typing import List, Sequence
# thirdpartylib
import numpy as np
import pandas as pd
import statsmodels.api as sm # pyright: ignore[reportMissingTypeStubs]
from statsmodels.stats.outliers_influence import ( # pyright: ignore
    variance_inflation_factor,
)
# projectlib
from grid_mix_forecasting.config.constants import VIF_THRESHOLD


@dataclass(frozen=True)
class CollinearityReport:
    """
    OLS fit of the target on candidate predictors with per-predictor
    variance inflation factors.
    """
    vif: pd.DataFrame
    r_squared: float
    threshold: float

    @property
    def collinear(self) -> List[str]:
        """Predictors whose VIF exceeds the threshold, worst first."""
        flagged = self.vif[self.vif["collinear"]]
        return flagged.sort_values("vif", ascending=False).index.tolist()

    @property
    def max_vif(self) -> float:
        return float(self.vif["vif"].max())


def variance_inflation(
        frame: pd.DataFrame,
        predictors: Sequence[str],
    ) -> pd.Series:
    """
    Variance inflation factor of each predictor.

    The design matrix includes an intercept so that each auxiliary
    regression is centred; the intercept's own factor is not reported.
    """
    design = sm.add_constant(
        frame[list(predictors)].astype(np.float64),
        has_constant="add",
    )
    values = design.to_numpy()
    return pd.Series(
        [
            variance_inflation_factor(values, i)
            for i in range(1, values.shape[1])
        ],
        index=pd.Index(list(predictors), name="predictor"),
        name="vif",
    )

def collinearity_check(
        frame: pd.DataFrame,
        target: str,
        predictors: Sequence[str],
        *,
        threshold: float = VIF_THRESHOLD,
    ) -> CollinearityReport:
    """
    Regress ``target`` on ``predictors`` and flag collinear predictors.

    Parameters
    ----------
    frame : pd.DataFrame
        Data holding the target and predictor columns.
    target : str
        Dependent variable of the OLS fit.
    predictors : Sequence[str]
        Candidate regressors.
    threshold : float, default 5.0
        VIF above which a predictor is reported as collinear.

    Returns
    -------
    CollinearityReport
    """
    data = frame[[target, *predictors]].dropna().astype(np.float64)
    ols = sm.OLS(
        data[target],
        sm.add_constant(data[list(predictors)], has_constant="add"),
    ).fit()
    vif = variance_inflation(data, predictors).to_frame()
    vif["collinear"] = vif["vif"] > threshold
    return CollinearityReport(
        vif=vif,
        r_squared=float(ols.rsquared),
        threshold=threshold,
    )

def prune_collinear(
        frame: pd.DataFrame,
        target: str,
        predictors: Sequence[str],
        *,
        threshold: float = VIF_THRESHOLD,
    ) -> List[str]:
    """
    Drop the predictor with the highest VIF until none exceeds
    ``threshold``; return the surviving predictors in input order.
    """
    kept = list(predictors)
    while len(kept) > 1:
        report = collinearity_check(
            frame, target, kept, threshold=threshold
        )
        if not report.collinear:
            break
        kept.remove(report.collinear[0])
    return kept
