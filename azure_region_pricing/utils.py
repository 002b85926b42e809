import logging
from rich.logging import RichHandler
from .config import LOG_FILENAME

def setup_logger(level=logging.INFO, filename=LOG_FILENAME):
    """Sets up the root logger with a Rich console handler and a plain file handler."""
    log_format = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"

    logger = logging.getLogger()
    logger.setLevel(level)

    # Called once per run, but tests call it repeatedly
    if logger.hasHandlers():
        logger.handlers.clear()

    file_handler = logging.FileHandler(filename)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)

    rich_handler = RichHandler(rich_tracebacks=True, markup=True, show_path=False)
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    logger.info(f"Logger configured: Level={logging.getLevelName(level)}, File='{filename}'")

    # HTTP libraries log every request at DEBUG; keep them quiet unless we are debugging too
    if level > logging.DEBUG:
        for logger_name in ('urllib3', 'requests'):
            logging.getLogger(logger_name).setLevel(logging.WARNING)
            logger.debug(f"Set level for {logger_name} to WARNING")
    else:
        logger.debug("Main log level is DEBUG, keeping HTTP library loggers verbose.")

    return logger


def chunked(values, size):
    """Splits a sequence into consecutive lists of at most `size` items."""
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")
    values = list(values)
    return [values[i:i + size] for i in range(0, len(values), size)]


def normalize_region(region: str) -> str:
    """Region codes as the catalog's armRegionName uses them ('West Europe' -> 'westeurope')."""
    if not region:
        return ''
    return region.strip().lower().replace(' ', '').replace('-', '').replace('_', '')
