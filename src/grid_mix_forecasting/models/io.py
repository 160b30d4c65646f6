# stdlib
from pathlib import Path
from typing import Optional
# thirdpartylib
import joblib # pyright: ignore[reportMissingTypeStubs]
# projectlib
from grid_mix_forecasting.utils.typing import Address
from grid_mix_forecasting.utils.paths import validate_address
from grid_mix_forecasting.utils.logging import Logger
from grid_mix_forecasting.models.forecasting import FittedModel

def save_model(
        model: FittedModel,
        output_dir: Address,
        *,
        model_name: Optional[str] = None,
        logger: Optional[Logger] = None,
    ) -> Path:
    """
    Persist a fitted forecasting model to disk with ``joblib``.

    The file is named ``<model_name>_model.joblib`` inside
    ``output_dir``, which is created if needed. An existing file with
    the same name is not overwritten; the new file receives a
    timestamp suffix instead.

    Parameters
    ----------
    model : FittedModel
        Fitted model, including its statsmodels results object.
    output_dir : Address
        Directory in which the model file will be saved.
    model_name : str, optional
        Base name for the file; defaults to ``model.name``.
    logger : Logger, optional
        Receives the saved path at verbosity 1 and serialization errors
        at verbosity 0.

    Returns
    -------
    pathlib.Path
        Location of the written file.
    """
    log = logger if logger is not None else Logger(verbose=0)
    name = model_name or model.name
    output_dir = validate_address(output_dir, mkdir=True)
    model_path = validate_address(
        output_dir / f"{name}_model.joblib",
        extension=".joblib",
        mode="w",
    )
    try:
        joblib.dump(  # pyright: ignore[reportUnknownMemberType]
            model,
            model_path,
        )
    except Exception as exc:
        log(f"Error saving {name} model: {exc}", verbosity=0)
        raise
    log(f"Saved {name} model ({model.spec}) to: {model_path}", verbosity=1)
    return model_path

def load_model(model_path: Address) -> FittedModel:
    """
    Load a model written by :func:`save_model`.

    Raises
    ------
    FileNotFoundError
        If ``model_path`` does not exist.
    RuntimeError
        If the file does not hold a ``FittedModel``.
    """
    model_path = validate_address(model_path, extension=".joblib")
    loaded = joblib.load(  # pyright: ignore[reportUnknownMemberType]
        model_path
    )
    if not isinstance(loaded, FittedModel):
        raise RuntimeError(
            f"Object loaded from '{model_path}' is not a FittedModel "
            f"(got {type(loaded).__name__})."
        )
    return loaded
