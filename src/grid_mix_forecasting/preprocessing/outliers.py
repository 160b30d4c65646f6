# thirdpartylib
import pandas as pd
# projectlib
from grid_mix_forecasting.data.schemas import Column

def flag_steepest_drop(series: pd.Series) -> pd.Series:
    """
    Mark the single observation that ends the steepest fall in a series.

    The first difference ``x[t] - x[t-1]`` is computed and the row at
    which its most negative value lands is flagged with ``1``; every
    other row is ``0``. Ties resolve to the earliest occurrence, so
    exactly one row is flagged.

    The flag is used as an intervention dummy in the dynamic
    regression: one abrupt level shift in the aggregated target would
    otherwise dominate the ARIMA error structure.

    Parameters
    ----------
    series : pd.Series
        Target series in time order.

    Returns
    -------
    pd.Series
        Integer indicator aligned to ``series`` and named ``outlier``.

    Raises
    ------
    ValueError
        If fewer than two non-missing observations are available.
    """
    diffs = series.diff()
    if diffs.notna().sum() == 0:
        raise ValueError(
            "At least two consecutive observations are required to "
            "locate the steepest drop."
        )
    flags = pd.Series(0, index=series.index, name=Column.OUTLIER.value)
    flags.loc[diffs.idxmin()] = 1
    return flags
