import logging
import os
import sys


def set_debug_mode(debug: bool) -> None:
    """Set debug mode for the service logger based on the --debug CLI flag.

    Args:
        debug: True to enable DEBUG level logging, False for INFO level logging
    """
    level = logging.DEBUG if debug else logging.INFO

    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)

    logger.info(
        "Logger debug mode %s - log level set to %s",
        "enabled" if debug else "disabled",
        "DEBUG" if debug else "INFO",
    )


## Set up default logger ##

if os.getenv("DEBUG_MODE", "false") == "true":
    loglevel = logging.DEBUG
else:
    env_level = os.getenv("LOGLEVEL", "INFO").upper()
    loglevel = (
        getattr(logging, env_level)
        if env_level in ["DEBUG", "INFO", "WARN", "ERROR", "CRITICAL"]
        else logging.INFO
    )

logger = logging.getLogger("mcp-google-oauth")
logger.setLevel(loglevel)
logger.propagate = False  # Prevent double logging by uvicorn

stdout_handler = logging.StreamHandler(sys.stdout)
stdout_handler.setLevel(loglevel)

formatter = logging.Formatter("%(levelname)s - %(message)s")
stdout_handler.setFormatter(formatter)

logger.addHandler(stdout_handler)
