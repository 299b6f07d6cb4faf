import logging
import os
from datetime import datetime
from pathlib import Path

LOG_FORMAT = '%(asctime)s:%(name)s:%(levelname)s:%(message)s'


def configure_logging(level: str | None = None, log_dir: str | os.PathLike = "logs") -> Path:
    """Set up logging to a timestamped file plus the console.

    Returns the path of the log file.
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()

    ## Add folder for logging
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    ## Add timestamp for logfiles
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    log_file = log_dir / f"{timestamp}_voice_session.log"

    ## Set up logging (file + console)
    logging.basicConfig(
        filename=str(log_file),
        filemode="w",
        format=LOG_FORMAT,
        level=log_level,
        force=True,
    )

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(console)

    # The room SDK is chatty at DEBUG
    if log_level == "DEBUG":
        logging.getLogger("livekit").setLevel(logging.INFO)
    return log_file
