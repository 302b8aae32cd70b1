from __future__ import annotations

import json
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Any, Dict, List, Union

JsonDoc = Union[Dict[str, Any], List[Any]]


def read_json(path: Path) -> JsonDoc:
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: Path, obj: JsonDoc) -> None:
    """
    Pretty-print JSON to UTF-8 file with best-effort atomic write:
    write to temp file in same directory, then replace.
    A failed dump never touches the destination file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with NamedTemporaryFile("w", encoding="utf-8", dir=path.parent, suffix=".tmp", delete=False) as tmp:
        tmp_path = Path(tmp.name)
        try:
            json.dump(obj, tmp, ensure_ascii=False, indent=2)
            tmp.write("\n")
        except Exception:
            tmp.close()
            tmp_path.unlink(missing_ok=True)
            raise

    os.replace(tmp_path, path)


def value_list(doc: JsonDoc) -> List[Any]:
    """
    Extract the record list from a feed document.
    Accepts {"body": {"value": [...]}}, {"value": [...]} or a bare array.
    """
    if isinstance(doc, list):
        return doc
    if isinstance(doc, dict):
        body = doc.get("body")
        if isinstance(body, dict) and isinstance(body.get("value"), list):
            return body["value"]
        if isinstance(doc.get("value"), list):
            return doc["value"]
        raise ValueError("Document is an object but has no 'body.value' list.")
    raise ValueError("Document should be either an object or an array at the top level.")


def wrap_value_list(items: List[Any]) -> Dict[str, Any]:
    return {"body": {"value": items}}
