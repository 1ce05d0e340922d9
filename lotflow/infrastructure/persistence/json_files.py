"""Small helpers for atomic JSON snapshots on disk."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Optional

from lotflow.domain.exceptions import RepositoryError


def write_json_atomic(path: Path, data: Any) -> None:
    """Write ``data`` to ``path`` through a temporary file and an atomic replace."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        tmp_path.replace(path)
    except (OSError, TypeError, ValueError) as exc:
        raise RepositoryError(f"Failed to write {path}", exc)
    finally:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)


def read_json(path: Path) -> Optional[Any]:
    """Return the parsed content of ``path`` or ``None`` if it does not exist."""
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise RepositoryError(f"Corrupted snapshot {path}", exc)
    except OSError as exc:  # pragma: no cover - disk failure
        raise RepositoryError(f"Failed to read {path}", exc)
