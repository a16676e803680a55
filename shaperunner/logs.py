import logging

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(levelname)s %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, datefmt=DATE_FORMAT)


def preview(text: str, limit: int = 200) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."
