import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Union

logger = logging.getLogger(__name__)


def read_json_mapping(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Reads a JSON object from disk.

    Returns an empty dict when the file is missing, unreadable, not valid JSON
    or holds something other than a JSON object.
    """
    path = Path(path)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {path}, treating it as empty: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"{path} does not hold a JSON object, treating it as empty.")
        return {}
    return data


def write_json_atomic(path: Union[str, Path], data: Dict[str, Any]) -> None:
    """
    Writes `data` as JSON so that readers see either the old or the new file, never a partial one.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2, sort_keys=True)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
