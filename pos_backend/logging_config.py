import logging
import os

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] %(message)s"


def init_log(level: str = None, log_name: str = "pos_backend"):
    logging.basicConfig(
        level=level or os.environ.get("LOG_LEVEL", "INFO"),
        format=LOG_FORMAT,
    )

    # passlib warns about optional backends on every hash
    logging.getLogger("passlib").setLevel(logging.ERROR)

    return logging.getLogger(log_name)
