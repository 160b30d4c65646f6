# stdlib
from pathlib import Path
from datetime import datetime
from typing import List, Optional
from types import TracebackType
# projectlib
from grid_mix_forecasting.utils.paths import validate_address
from grid_mix_forecasting.utils.typing import Verbosity, Address

class Logger(object):
    """
    Callable run logger for the grid mix pipeline.

    Messages are filtered against a verbosity threshold and either
    printed to stdout or appended to ``log.txt`` in the run's output
    directory, next to the snapshots and forecast tables. One instance
    is shared by the loader checks, the model bank and the projection,
    so a single ``verbose`` setting controls how chatty a run is:

    - ``0``: the preferred model, the projection headline and warnings
    - ``1``: stage progress (row counts, diagnostics, holdout scores)
    - ``2``: every ETS form and ARIMA order tried during selection

    Warnings are also kept on ``warnings`` so a caller can inspect the
    data-quality and model failures of a run without parsing the log.
    """

    def __init__(
        self,
        verbose: Verbosity = 0,
        log_dir: Optional[Address] = None,
        write_log: bool = False
    ) -> None:
        """
        Parameters
        ----------
        verbose : Verbosity, default 0
            Highest message level that is emitted.
        log_dir : Address, optional
            Output directory of the run; ``log.txt`` is created there
            when ``write_log`` is True. Defaults to the working
            directory.
        write_log : bool, default False
            Append to ``log.txt`` instead of printing.
        """
        self.verbose = verbose
        log_dir = Path.cwd() if log_dir is None else log_dir
        self.log_path = (
            validate_address(log_dir, mkdir=write_log) / "log.txt"
        )
        self.write_log = write_log
        self.warnings: List[str] = []

    def __call__(self, msg: str, verbosity: int = 0) -> None:
        """Emit ``msg`` if ``verbosity`` is within the threshold."""
        if self.verbose >= verbosity:
            formatted = self._format(msg)
            if self.write_log:
                self.write(formatted)
            else:
                print(formatted)

    def warn(self, msg: str) -> None:
        """
        Record ``msg`` and emit it at every verbosity, tagged
        ``[WARN]``. Used for missing data, skipped projections and
        models that failed to fit or forecast.
        """
        self.warnings.append(msg)
        self(f"[WARN] {msg}", verbosity=0)

    def write(self, msg: str) -> None:
        with open(self.log_path, "a", encoding="utf-8") as file:
            file.write(msg + "\n")

    def _format(self, msg: str) -> str:
        ts = datetime.now().isoformat(timespec="seconds")
        return f"[{ts}] {msg}"

    def __enter__(self) -> "Logger":
        return self

    def __exit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
        ) -> None:
        pass
