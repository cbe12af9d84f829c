"""
Load the Terraform state snapshot from a local file or a GCS bucket.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Tuple

from tfreco.config import Settings, get_settings
from .snapshot import StateSnapshot

logger = logging.getLogger(__name__)

GCS_SCHEME = "gs://"


def parse_gcs_uri(uri: str) -> Tuple[str, str]:
    """
    Split gs://bucket/object into (bucket, object).

    Raises:
        ValueError: If the URI has no bucket or no object path
    """
    if not uri.startswith(GCS_SCHEME):
        raise ValueError(f"Not a GCS URI: {uri}")
    bucket, _, blob = uri[len(GCS_SCHEME):].partition("/")
    if not bucket or not blob:
        raise ValueError(f"GCS URI must name a bucket and an object: {uri}")
    return bucket, blob


def parse_state(raw: bytes | str, source: str) -> StateSnapshot:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"Terraform state at {source} is not valid JSON: {e}")
    return StateSnapshot.from_dict(data)


def read_state_file(path: str) -> StateSnapshot:
    """
    Raises:
        FileNotFoundError: If the state file does not exist
        ValueError: If the file is not a Terraform state document
    """
    p = Path(path)
    if not p.is_file():
        raise FileNotFoundError(f"Terraform state not found: {p}")
    return parse_state(p.read_bytes(), str(p))


def download_state(bucket_name: str, object_name: str) -> StateSnapshot:
    """
    Download the state object from GCS with application default credentials.

    Raises:
        FileNotFoundError: If the object does not exist
        ValueError: If the object is not a Terraform state document
    """
    from google.cloud import storage

    logger.info(f"Started - Download TF state gs://{bucket_name}/{object_name}")
    client = storage.Client()
    blob = client.bucket(bucket_name).blob(object_name)
    if not blob.exists():
        raise FileNotFoundError(f"Terraform state not found: gs://{bucket_name}/{object_name}")

    state = parse_state(blob.download_as_bytes(), f"gs://{bucket_name}/{object_name}")
    logger.info(f"Completed - Download TF state ({len(state.resources)} resources)")
    return state


def load_state(source: Optional[str] = None, settings: Optional[Settings] = None) -> StateSnapshot:
    """
    Load the state snapshot for one run.

    Args:
        source: Local path or gs://bucket/object. When omitted the configured
            TFRECO_STATE_BUCKET and TFRECO_STATE_OBJECT are used.
        settings: Settings to read defaults from

    Returns:
        StateSnapshot
    """
    settings = settings or get_settings()
    if not source:
        if not settings.state_bucket:
            raise ValueError("No state source given and TFRECO_STATE_BUCKET is not set")
        return download_state(settings.state_bucket, settings.state_object)
    if source.startswith(GCS_SCHEME):
        return download_state(*parse_gcs_uri(source))
    return read_state_file(source)
