import time


def get_timestamp() -> int:
    """Return the current time in whole seconds since the Unix epoch."""
    return int(time.time())
