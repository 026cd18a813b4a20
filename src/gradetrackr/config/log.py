import logging
from typing import Optional, Union

from gradetrackr.config.settings import settings


def configure_logging(level: Optional[Union[str, int]] = None) -> None:
    resolved = level if level is not None else settings.log_level
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved.upper())
        if not isinstance(resolved, int):
            resolved = logging.WARNING

    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("gradetrackr").setLevel(resolved)

    # HTTP client chatter from the Appwrite SDK
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("appwrite").setLevel(logging.WARNING)
