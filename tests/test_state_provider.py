"""
Tests for loading the Terraform state and reading settings.
"""

import json
import pytest
from unittest.mock import MagicMock, patch
from tfreco.config import Settings, get_settings
from tfreco.state import load_state
from tfreco.state.provider import parse_gcs_uri, read_state_file


STATE = {
    "version": 4,
    "resources": [{
        "mode": "managed",
        "type": "google_compute_instance",
        "name": "default",
        "instances": [{"attributes": {"id": "projects/p/zones/z/instances/i"}}],
    }],
}


class TestLocalState:
    """Test reading state files from disk."""

    def test_read_local_state(self, tmp_path):
        """Test loading a state file by path."""
        path = tmp_path / "default.tfstate"
        path.write_text(json.dumps(STATE))
        state = load_state(str(path))

        assert state.version == 4
        assert [r.name for r in state.resources] == ["default"]

    def test_missing_and_invalid_state(self, tmp_path):
        """Test missing files and broken JSON."""
        with pytest.raises(FileNotFoundError):
            read_state_file(str(tmp_path / "nope.tfstate"))

        bad = tmp_path / "bad.tfstate"
        bad.write_text("{")
        with pytest.raises(ValueError):
            read_state_file(str(bad))

    def test_no_source_and_no_bucket(self):
        with pytest.raises(ValueError):
            load_state(settings=Settings())


class TestGcsState:
    """Test downloading state from a bucket."""

    def test_parse_gcs_uri(self):
        assert parse_gcs_uri("gs://bucket/terraform/state/default.tfstate") == (
            "bucket", "terraform/state/default.tfstate")
        with pytest.raises(ValueError):
            parse_gcs_uri("gs://bucket")
        with pytest.raises(ValueError):
            parse_gcs_uri("s3://bucket/key")

    def test_download_from_gcs_uri(self):
        """Test that a gs:// source downloads the named object."""
        blob = MagicMock()
        blob.exists.return_value = True
        blob.download_as_bytes.return_value = json.dumps(STATE).encode()

        with patch("google.cloud.storage.Client") as client_cls:
            client_cls.return_value.bucket.return_value.blob.return_value = blob
            state = load_state("gs://tf-bucket/envs/prod.tfstate")

        client_cls.return_value.bucket.assert_called_once_with("tf-bucket")
        client_cls.return_value.bucket.return_value.blob.assert_called_once_with("envs/prod.tfstate")
        assert state.resources[0].type == "google_compute_instance"

    def test_configured_bucket_and_missing_object(self):
        """Test the default object path and a missing object."""
        blob = MagicMock()
        blob.exists.return_value = False
        settings = Settings(state_bucket="tf-bucket")

        with patch("google.cloud.storage.Client") as client_cls:
            client_cls.return_value.bucket.return_value.blob.return_value = blob
            with pytest.raises(FileNotFoundError):
                load_state(settings=settings)

        client_cls.return_value.bucket.return_value.blob.assert_called_once_with("terraform/state/default.tfstate")


class TestSettings:
    """Test environment settings."""

    def test_defaults(self, monkeypatch):
        for name in ("TFRECO_MANIFEST_EXT", "TFRECO_VARIABLES_FILE", "TFRECO_STATE_BUCKET",
                     "TFRECO_STATE_OBJECT", "TFRECO_IO_WORKERS"):
            monkeypatch.delenv(name, raising=False)

        assert get_settings() == Settings()

    def test_settings_from_environment(self, monkeypatch):
        """Test extension normalisation and worker bounds."""
        monkeypatch.setenv("TFRECO_MANIFEST_EXT", "TF")
        monkeypatch.setenv("TFRECO_IO_WORKERS", "0")
        monkeypatch.setenv("TFRECO_STATE_BUCKET", "")
        settings = get_settings()

        assert settings.manifest_ext == ".tf"
        assert settings.io_workers == 1
        assert settings.state_bucket is None

    def test_bad_worker_count(self, monkeypatch):
        monkeypatch.setenv("TFRECO_IO_WORKERS", "many")
        with pytest.raises(ValueError):
            get_settings()
