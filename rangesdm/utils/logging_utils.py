import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level=logging.INFO, verbose: bool = False, log_file: Optional[Path] = None):
    """Log to stdout and, when ``log_file`` is given, to a file as well."""
    log_level = logging.DEBUG if verbose else level
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers, force=True)
    # rasterio and fiona are chatty at debug level
    logging.getLogger("rasterio").setLevel(logging.WARNING)
    logging.getLogger("fiona").setLevel(logging.WARNING)
    logging.getLogger("pyogrio").setLevel(logging.WARNING)
