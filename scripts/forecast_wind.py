# stdlib
import argparse
from pathlib import Path
# projectlib
from grid_mix_forecasting.config.env import (
    DATA_ROOT,
    GRID_DATA_FILE,
    OUTPUT_ROOT,
)
from grid_mix_forecasting.config.constants import (
    FORECAST_END,
    TEST_START_YEAR,
)
from grid_mix_forecasting.pipeline import run_pipeline

def parse_args() -> argparse.Namespace:
    """Parse input arguments for the wind generation forecast."""
    parser = argparse.ArgumentParser(
        description="Run the GB grid mix wind forecasting pipeline",
    )
    parser.add_argument(
        "--source",
        type=Path,
        default=DATA_ROOT / GRID_DATA_FILE,
        help="Raw five-minute grid export (CSV).",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=OUTPUT_ROOT / "wind",
        help="Directory for snapshots, tables, models and figures.",
    )
    parser.add_argument(
        "--test_start_year",
        type=int,
        default=TEST_START_YEAR,
        help="First calendar year of the holdout window.",
    )
    parser.add_argument(
        "--forecast_end",
        type=str,
        default=FORECAST_END,
        help="Last month of the projection, as YYYY-MM.",
    )
    parser.add_argument(
        "--verbosity",
        type=int,
        default=1,
        choices=(0, 1, 2),
        help=(
            "Verbosity level: "
            "0 = silent, "
            "1 = info, "
            "2 = debug"
        ),
    )
    parser.add_argument(
        "--write_log",
        action="store_true",
        help="Whether to store message/info outputs to a log file.",
    )
    parser.add_argument(
        "--no_plots",
        action="store_true",
        help="Skip writing PNG figures.",
    )

    return parser.parse_args()

def main() -> None:
    """
    Entry point for running the wind forecast from the command line.

    Loads the raw grid export, aggregates it, evaluates the ETS,
    dynamic regression and SARIMA models on the holdout years and
    projects monthly mean wind generation to the requested month. All
    artifacts are written under ``--output_dir``.
    """
    args = parse_args()
    run_pipeline(
        source=args.source,
        output_dir=args.output_dir,
        test_start_year=args.test_start_year,
        forecast_end=args.forecast_end,
        verbosity=args.verbosity,
        write_log=args.write_log,
        plot=not args.no_plots,
    )

if __name__ == "__main__":
    main()
