import logging
import sys


def setup_logging(level=logging.INFO, stream=None):
    """Configure root logger for the CLI and the relay."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream or sys.stdout)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        "%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    handler._tee_deploy = True

    root = logging.getLogger()
    # repeated calls (CLI re-entry, tests) replace our handler instead of stacking
    for h in root.handlers[:]:
        if getattr(h, "_tee_deploy", False):
            root.removeHandler(h)
    root.setLevel(level)
    root.addHandler(handler)

    # silence noisy libraries if needed
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("cryptography").setLevel(logging.WARNING)
