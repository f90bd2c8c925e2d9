"""Tests for desired-state and callback context files."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from kafka_mock import model_properties

from replicator.config import MAX_SPEC_FILE_SIZE_BYTES
from replicator.models import TYPE_NAME, CallbackContext
from replicator.spec_loader import (
    SpecLoadError,
    load_callback_context,
    load_resource_model,
    save_callback_context,
)


class TestLoadResourceModel:
    """Tests for load_resource_model()."""

    def test_plain_properties(self, tmp_path: Path) -> None:
        """Test loading bare properties from YAML."""
        path = tmp_path / "replicator.yaml"
        path.write_text(yaml.safe_dump(model_properties()))

        model = load_resource_model(path)

        assert model.replicator_name == "orders-replicator"
        assert len(model.replication_info_list) == 1

    def test_resource_wrapper(self, tmp_path: Path) -> None:
        """Test loading a CloudFormation-style resource declaration."""
        path = tmp_path / "replicator.yaml"
        path.write_text(yaml.safe_dump({"Type": TYPE_NAME, "Properties": model_properties()}))

        assert load_resource_model(path).replicator_name == "orders-replicator"

    def test_json_file(self, tmp_path: Path) -> None:
        """Test that JSON files are accepted."""
        path = tmp_path / "replicator.json"
        path.write_text(json.dumps(model_properties()))

        assert load_resource_model(path).service_execution_role_arn is not None

    def test_wrong_resource_type(self, tmp_path: Path) -> None:
        path = tmp_path / "cluster.yaml"
        path.write_text(yaml.safe_dump({"Type": "AWS::MSK::Cluster", "Properties": {}}))

        with pytest.raises(SpecLoadError, match="Unsupported resource type"):
            load_resource_model(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(SpecLoadError, match="must be a mapping"):
            load_resource_model(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("ReplicatorName: [unclosed\n")

        with pytest.raises(SpecLoadError, match="Invalid YAML"):
            load_resource_model(path)

    def test_validation_error_lists_fields(self, tmp_path: Path) -> None:
        """Test that validation failures name the offending field."""
        properties = model_properties()
        properties["ReplicationInfoList"][0]["TargetCompressionType"] = "BROTLI"
        path = tmp_path / "replicator.yaml"
        path.write_text(yaml.safe_dump(properties))

        with pytest.raises(SpecLoadError) as exc_info:
            load_resource_model(path)

        assert "Validation failed" in str(exc_info.value)
        assert "TargetCompressionType" in str(exc_info.value)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="File not found"):
            load_resource_model(tmp_path / "absent.yaml")

    def test_file_too_large(self, tmp_path: Path) -> None:
        """Test that oversized files are rejected before parsing."""
        path = tmp_path / "huge.yaml"
        path.write_text("x" * (MAX_SPEC_FILE_SIZE_BYTES + 1))

        with pytest.raises(SpecLoadError, match="exceeds maximum size"):
            load_resource_model(path)


class TestCallbackContextFiles:
    """Tests for saving and loading callback contexts."""

    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.json"
        context = CallbackContext(replicator_arn="arn:aws:kafka:x", completed_stages=["untag"]).enter(
            "update_replication_info", 42.0
        )

        save_callback_context(path, context)

        assert load_callback_context(path) == context

    def test_invalid_context(self, tmp_path: Path) -> None:
        path = tmp_path / "ctx.json"
        path.write_text('{"completed_stages": "not-a-list"}')

        with pytest.raises(SpecLoadError, match="Validation failed"):
            load_callback_context(path)
