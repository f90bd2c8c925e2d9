"""Mock kafka client with in-memory replicator state.

Implements the subset of the boto3 ``kafka`` client the handlers call. Each
replicator walks a lifecycle driven by DescribeReplicator calls: a freshly
created replicator reports CREATING for ``create_polls`` describes and then
RUNNING, unless ``create_states`` scripts its describes; an update reports
UPDATING for ``update_polls`` describes; a deletion reports DELETING for
``delete_polls`` describes and then the replicator disappears.
"""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass, field
from typing import Any

from botocore.exceptions import ParamValidationError

from .errors import make_client_error, make_invalid_arn_error, make_not_found_error

DEFAULT_ACCOUNT_ID = "123456789012"


@dataclass
class MockReplicator:
    """One replicator held in mock state."""

    arn: str
    name: str
    state: str
    kafka_clusters: list[dict[str, Any]] = field(default_factory=list)
    replication_info_list: list[dict[str, Any]] = field(default_factory=list)
    service_execution_role_arn: str | None = None
    description: str | None = None
    tags: dict[str, str] = field(default_factory=dict)
    current_version: str = "K3AEGXETSR30VB"
    # States returned by upcoming describes; the last one sticks
    pending_states: list[str] = field(default_factory=list)
    deleted_after_pending: bool = False

    def alias_for(self, cluster_arn: str) -> str:
        for index, cluster in enumerate(self.kafka_clusters):
            if cluster["AmazonMskCluster"]["MskClusterArn"] == cluster_arn:
                return f"cluster-{index}"
        raise KeyError(cluster_arn)

    def describe(self) -> dict[str, Any]:
        clusters = []
        for index, cluster in enumerate(self.kafka_clusters):
            described = copy.deepcopy(cluster)
            described["KafkaClusterAlias"] = f"cluster-{index}"
            clusters.append(described)

        infos = []
        for info in self.replication_info_list:
            described = {
                "SourceKafkaClusterAlias": self.alias_for(info["SourceKafkaClusterArn"]),
                "TargetKafkaClusterAlias": self.alias_for(info["TargetKafkaClusterArn"]),
                "TopicReplication": copy.deepcopy(info.get("TopicReplication", {})),
                "ConsumerGroupReplication": copy.deepcopy(info.get("ConsumerGroupReplication", {})),
            }
            if "TargetCompressionType" in info:
                described["TargetCompressionType"] = info["TargetCompressionType"]
            infos.append(described)

        response: dict[str, Any] = {
            "ReplicatorArn": self.arn,
            "ReplicatorName": self.name,
            "ReplicatorState": self.state,
            "CurrentVersion": self.current_version,
            "KafkaClusters": clusters,
            "ReplicationInfoList": infos,
            "ServiceExecutionRoleArn": self.service_execution_role_arn,
            "Tags": dict(self.tags),
            "IsReplicatorReference": False,
        }
        if self.description is not None:
            response["ReplicatorDescription"] = self.description
        return response


class MockKafkaClient:
    """In-memory kafka client.

    Usage:
        client = MockKafkaClient(create_polls=2)
        client.inject_error("create_replicator", make_client_error("ConflictException"))
        client.script_states(arn, "UPDATING", "FAILED")
    """

    def __init__(
        self,
        *,
        region: str = "us-east-1",
        account_id: str = DEFAULT_ACCOUNT_ID,
        create_polls: int = 1,
        update_polls: int = 1,
        delete_polls: int = 1,
        page_size: int = 10,
        create_states: list[str] | None = None,
    ) -> None:
        self._region = region
        self._account_id = account_id
        self._create_polls = create_polls
        self._update_polls = update_polls
        self._delete_polls = delete_polls
        self._page_size = page_size
        self._create_states = create_states

        self._replicators: dict[str, MockReplicator] = {}
        self._errors: dict[str, list[Exception]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def make_arn(self, name: str) -> str:
        return (
            f"arn:aws:kafka:{self._region}:{self._account_id}:replicator/"
            f"{name}/{uuid.uuid4()}-2"
        )

    def add_replicator(self, name: str, state: str = "RUNNING", **kwargs: Any) -> MockReplicator:
        """Seed state with an existing replicator."""
        arn = kwargs.pop("arn", None) or self.make_arn(name)
        replicator = MockReplicator(arn=arn, name=name, state=state, **kwargs)
        self._replicators[replicator.arn] = replicator
        return replicator

    def get_replicator(self, arn: str) -> MockReplicator | None:
        return self._replicators.get(arn)

    def script_states(self, arn: str, *states: str) -> None:
        """Replace the states reported by the next describes of ``arn``."""
        self._replicators[arn].pending_states = list(states)

    def inject_error(self, method: str, error: Exception, times: int = 1) -> None:
        """Raise ``error`` from the next ``times`` calls of ``method``."""
        self._errors.setdefault(method, []).extend([error] * times)

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def call_count(self, method: str) -> int:
        return len(self.calls_to(method))

    @property
    def mutating_calls(self) -> list[str]:
        readonly = {"describe_replicator", "list_replicators"}
        return [name for name, _ in self.calls if name not in readonly]

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _record(self, method: str, kwargs: dict[str, Any]) -> None:
        self.calls.append((method, copy.deepcopy(kwargs)))
        queued = self._errors.get(method)
        if queued:
            raise queued.pop(0)

    def _lookup(self, arn: Any, operation: str) -> MockReplicator:
        if not isinstance(arn, str):
            raise ParamValidationError(report=f"Invalid type for parameter ReplicatorArn, value: {arn}")
        if not arn.startswith("arn:"):
            raise make_invalid_arn_error(operation)
        replicator = self._replicators.get(arn)
        if replicator is None:
            raise make_not_found_error(arn, operation)
        return replicator

    # -------------------------------------------------------------------------
    # kafka client API
    # -------------------------------------------------------------------------

    def create_replicator(self, **kwargs: Any) -> dict[str, Any]:
        self._record("create_replicator", kwargs)
        name = kwargs["ReplicatorName"]
        if any(r.name == name for r in self._replicators.values()):
            raise make_client_error(
                "ConflictException",
                f"A replicator with name {name} already exists.",
                status=409,
                operation="CreateReplicator",
            )

        replicator = self.add_replicator(
            name,
            state="CREATING",
            kafka_clusters=copy.deepcopy(kwargs.get("KafkaClusters", [])),
            replication_info_list=copy.deepcopy(kwargs.get("ReplicationInfoList", [])),
            service_execution_role_arn=kwargs.get("ServiceExecutionRoleArn"),
            description=kwargs.get("Description"),
            tags=dict(kwargs.get("Tags", {})),
            pending_states=(
                list(self._create_states)
                if self._create_states is not None
                else ["CREATING"] * self._create_polls + ["RUNNING"]
            ),
        )
        return {
            "ReplicatorArn": replicator.arn,
            "ReplicatorName": replicator.name,
            "ReplicatorState": replicator.state,
        }

    def describe_replicator(self, **kwargs: Any) -> dict[str, Any]:
        self._record("describe_replicator", kwargs)
        replicator = self._lookup(kwargs.get("ReplicatorArn"), "DescribeReplicator")

        if replicator.pending_states:
            replicator.state = replicator.pending_states.pop(0)
        elif replicator.deleted_after_pending:
            del self._replicators[replicator.arn]
            raise make_not_found_error(replicator.arn)

        return replicator.describe()

    def update_replication_info(self, **kwargs: Any) -> dict[str, Any]:
        self._record("update_replication_info", kwargs)
        replicator = self._lookup(kwargs.get("ReplicatorArn"), "UpdateReplicationInfo")

        if kwargs.get("CurrentVersion") != replicator.current_version:
            raise make_client_error(
                "BadRequestException",
                "The replicator version does not match the current version.",
                invalid_parameter="currentVersion",
                operation="UpdateReplicationInfo",
            )

        key = (kwargs["SourceKafkaClusterArn"], kwargs["TargetKafkaClusterArn"])
        for info in replicator.replication_info_list:
            if (info["SourceKafkaClusterArn"], info["TargetKafkaClusterArn"]) == key:
                if "TopicReplication" in kwargs:
                    info["TopicReplication"] = copy.deepcopy(kwargs["TopicReplication"])
                if "ConsumerGroupReplication" in kwargs:
                    info["ConsumerGroupReplication"] = copy.deepcopy(
                        kwargs["ConsumerGroupReplication"]
                    )
                break
        else:
            raise make_client_error(
                "BadRequestException",
                "One or more of the parameters are not valid.",
                invalid_parameter="sourceKafkaClusterArn",
                operation="UpdateReplicationInfo",
            )

        replicator.current_version = f"V{uuid.uuid4().hex[:12].upper()}"
        replicator.state = "UPDATING"
        replicator.pending_states = ["UPDATING"] * self._update_polls + ["RUNNING"]
        return {"ReplicatorArn": replicator.arn, "ReplicatorState": replicator.state}

    def delete_replicator(self, **kwargs: Any) -> dict[str, Any]:
        self._record("delete_replicator", kwargs)
        replicator = self._lookup(kwargs.get("ReplicatorArn"), "DeleteReplicator")
        replicator.state = "DELETING"
        replicator.pending_states = ["DELETING"] * self._delete_polls
        replicator.deleted_after_pending = True
        return {"ReplicatorArn": replicator.arn, "ReplicatorState": replicator.state}

    def list_replicators(self, **kwargs: Any) -> dict[str, Any]:
        self._record("list_replicators", kwargs)
        start = int(kwargs.get("NextToken") or 0)
        arns = list(self._replicators)
        page = arns[start : start + self._page_size]

        response: dict[str, Any] = {
            "Replicators": [
                {
                    "ReplicatorArn": arn,
                    "ReplicatorName": self._replicators[arn].name,
                    "ReplicatorState": self._replicators[arn].state,
                }
                for arn in page
            ]
        }
        if start + self._page_size < len(arns):
            response["NextToken"] = str(start + self._page_size)
        return response

    def tag_resource(self, **kwargs: Any) -> dict[str, Any]:
        self._record("tag_resource", kwargs)
        replicator = self._lookup(kwargs.get("ResourceArn"), "TagResource")
        replicator.tags.update(kwargs.get("Tags", {}))
        return {}

    def untag_resource(self, **kwargs: Any) -> dict[str, Any]:
        self._record("untag_resource", kwargs)
        replicator = self._lookup(kwargs.get("ResourceArn"), "UntagResource")
        for key in kwargs.get("TagKeys", []):
            replicator.tags.pop(key, None)
        return {}
