import json
from pathlib import Path
from typing import Any, Optional

from sqlinsight.core.logging import get_logger

logger = get_logger(__name__)


def load_schema_metadata(path: Optional[str]) -> Optional[Any]:
    """Read the warehouse schema document once. Returns None when no path is configured."""
    if not path:
        logger.warning("SCHEMA_METADATA_PATH not set; prompts will carry no schema")
        return None

    with Path(path).open(encoding="utf-8") as fh:
        data = json.load(fh)
    logger.info(f"Schema metadata loaded from {path}")
    return data
