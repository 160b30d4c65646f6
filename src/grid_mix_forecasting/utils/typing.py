# stdlib
from typing import Literal, Union, Sequence
from pathlib import Path
# thirdpartylib
import numpy as np
import pandas as pd
import polars as pl
from numpy.typing import NDArray

# Verbosity for classes, functions, methods, etc.
type Verbosity = Literal[0, 1, 2]
# Mode for opening documents
type ReadMode = Literal["r"]
type WriteMode = Literal["w", "x"]
type OpenMode = Literal[ReadMode, WriteMode]
# Type alias for file/folder paths
type Address = Union[str, Path]
# One dimensional numeric input accepted by metric functions
type ArrayLike1D = Union[Sequence[float], NDArray[np.float64], pd.Series]
# Tabular data accepted by backend agnostic helpers
type DataFrame = Union[pl.DataFrame, pl.LazyFrame, pd.DataFrame]
# Calendar periods used by the aggregation stage
type Period = Literal["day", "month"]
# Information criteria accepted by the order search
type Criterion = Literal["aic", "aicc", "bic"]
# Registered forecasting strategies
type ModelName = Literal["ets", "dynamic_regression", "sarima"]
