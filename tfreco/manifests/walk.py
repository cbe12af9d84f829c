from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from tfreco.config import get_settings
from tfreco.models import ManifestFile

logger = logging.getLogger(__name__)


def list_manifest_paths(root: str | Path, ext: Optional[str] = None) -> List[Path]:
    """
    List manifest files directly under root, sorted by name.

    Raises:
        FileNotFoundError: If root does not exist
        NotADirectoryError: If root is not a directory
    """
    root_path = Path(root)
    if not root_path.exists():
        raise FileNotFoundError(f"Manifest directory not found: {root_path}")
    if not root_path.is_dir():
        raise NotADirectoryError(f"Not a directory: {root_path}")

    suffix = (ext or get_settings().manifest_ext).lower()
    paths = [p for p in root_path.iterdir() if p.is_file() and p.suffix.lower() == suffix]
    return sorted(paths, key=lambda p: p.name)


def read_text(path: str | Path) -> str:
    # newline="" keeps \r\n intact so untouched lines are written back byte for byte
    with open(path, "r", encoding="utf-8", newline="") as f:
        return f.read()


def load_manifest_files(root: str | Path, ext: Optional[str] = None, workers: Optional[int] = None) -> List[ManifestFile]:
    """
    Read every manifest file in root (non-recursive).

    Args:
        root: Manifest directory
        ext: Manifest file extension, defaults to the configured one
        workers: Thread pool size for the reads

    Returns:
        List of ManifestFile in filename order
    """
    paths = list_manifest_paths(root, ext)
    if not paths:
        return []

    with ThreadPoolExecutor(max_workers=workers or get_settings().io_workers) as pool:
        contents = list(pool.map(read_text, paths))

    logger.debug(f"Loaded {len(paths)} manifest files from {root}")
    return [ManifestFile(path=str(p), contents=c) for p, c in zip(paths, contents)]


def parse_variables(text: str) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(("#", "//")) or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        if not key:
            continue
        variables[key] = value.replace('"', "").strip()
    return variables


def load_variables(path: str | Path) -> Dict[str, str]:
    """
    Read a flat key = "value" variables file.

    A missing or unreadable file yields an empty mapping.
    """
    p = Path(path)
    if not p.is_file():
        logger.debug(f"No variables file at {p}")
        return {}
    try:
        text = p.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Ignoring unreadable variables file {p}: {e}")
        return {}
    return parse_variables(text)


def write_manifest(path: str | Path, contents: str) -> str:
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(contents)
    return str(path)


def write_manifest_files(files: List[ManifestFile], workers: Optional[int] = None) -> List[str]:
    """
    Write files concurrently. The first failure propagates; files already
    written stay written.
    """
    if not files:
        return []
    with ThreadPoolExecutor(max_workers=workers or get_settings().io_workers) as pool:
        futures = [pool.submit(write_manifest, f.path, f.contents) for f in files]
        return [future.result() for future in futures]
