"""Write the JSON API tree to disk for static hosting.

Layout under the output directory:

    environments.json
    releases.json
    environmentreleases/<environment>.json
"""
import json
import os
from pathlib import Path
from typing import Any, List

from .logging_utils import logger


def atomic_write_json(path: Path, data: Any, *, encoding: str = "utf-8") -> None:
    """Write JSON to a temp file next to `path`, fsync, then rename over it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        with open(tmp_path, "w", encoding=encoding) as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


def export_api(accessor, out_dir) -> List[Path]:
    """Export environments, releases and per-environment releases; returns written paths."""
    root = Path(out_dir)
    written: List[Path] = []

    def write(rel: str, model) -> None:
        path = root / rel
        atomic_write_json(path, model.to_api())
        written.append(path)

    environments = accessor.list_environments()
    write("environments.json", environments)
    for environment in environments.items:
        write(f"environmentreleases/{environment.name}.json",
              accessor.list_environment_releases_for_environment(environment.name))
    write("releases.json", accessor.list_releases())

    logger.info("export_complete", out_dir=str(root), files=len(written))
    return written
