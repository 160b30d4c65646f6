# stdlib
from pathlib import Path
from datetime import datetime
# projectlib
from grid_mix_forecasting.utils.typing import Address, OpenMode

def validate_address(
    address: Address,
    *,
    extension: str = ".csv",
    mode: OpenMode = 'r',
    mkdir: bool = False,
) -> Path:
    """
    Resolve a path for one of the run's inputs or artifacts.

    Every file the pipeline touches goes through here: the raw export
    and the daily/monthly snapshots (``.csv``), dumped models
    (``.joblib``) and figures (``.png``). Directories such as the run's
    output folder and its ``models``/``figures`` subfolders are created
    with ``mkdir=True``.

    Parameters
    ----------
    address : Address
        File or directory path.
    extension : str, default ".csv"
        Suffix a file path is coerced to.
    mode : {"r", "w", "x"}, default "r"
        ``"r"`` requires the file to exist. ``"w"`` never overwrites:
        an existing file yields a timestamped sibling name, so reruns
        into the same output directory keep earlier artifacts. ``"x"``
        refuses an existing file outright.
    mkdir : bool, default False
        Treat the path as a directory and create it with its parents.

    Returns
    -------
    pathlib.Path

    Raises
    ------
    NotADirectoryError
        If the parent directory of a file path does not exist.
    FileNotFoundError
        If ``mode="r"`` and the file does not exist.
    FileExistsError
        If ``mode="x"`` and the file already exists.
    """
    if isinstance(address, str):
        address = Path(address)
    if mkdir:
        address.mkdir(parents=True, exist_ok=True)
    if address.is_dir():
        return address
    if not address.parent.is_dir():
        msg = (
            f"Address path {address.parent}"
            " does not exist or is not a directory."
        )
        raise NotADirectoryError(msg)
    if address.suffix != extension:
        address = address.with_suffix(extension)
    if mode == "r" and not address.is_file():
        msg = f"{address} is not a file or does not exist."
        raise FileNotFoundError(msg)
    if mode == "x" and address.exists():
        raise FileExistsError(f"{address} already exists.")
    if mode == "w" and address.exists():
        return _free_sibling(address)
    return address

def _free_sibling(address: Path) -> Path:
    """
    First unused ``<stem>_<timestamp>[_<n>]<suffix>`` next to
    ``address``. The counter covers several writes within one second.
    """
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    candidate = address.with_name(
        f"{address.stem}_{timestamp}{address.suffix}"
    )
    n = 1
    while candidate.exists():
        candidate = address.with_name(
            f"{address.stem}_{timestamp}_{n}{address.suffix}"
        )
        n += 1
    return candidate
