"""Pydantic models for the replicator resource and the handler protocol.

These models provide:
1. Type-safe parsing of desired state (PascalCase wire names or snake_case)
2. Validation at the boundary (fail fast, fail loudly)
3. A serializable callback context so an operation can be suspended and
   resumed between poll attempts
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field, field_validator

TYPE_NAME = "AWS::MSK::Replicator"

VALID_COMPRESSION_TYPES = {"NONE", "GZIP", "SNAPPY", "LZ4", "ZSTD"}

_MODEL_CONFIG = {"extra": "ignore", "populate_by_name": True}


class ReplicatorState(str, Enum):
    """Provisioning lifecycle states reported by DescribeReplicator."""

    CREATING = "CREATING"
    RUNNING = "RUNNING"
    UPDATING = "UPDATING"
    DELETING = "DELETING"
    DEGRADED = "DEGRADED"
    FAILED = "FAILED"


class OperationStatus(str, Enum):
    """Outcome reported to the host for one handler invocation."""

    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class HandlerErrorCode(str, Enum):
    """Classified failure codes carried by FAILED events."""

    INVALID_REQUEST = "InvalidRequest"
    NOT_FOUND = "NotFound"
    THROTTLING = "Throttling"
    INTERNAL_FAILURE = "InternalFailure"
    SERVICE_INTERNAL_ERROR = "ServiceInternalError"
    GENERAL_SERVICE_EXCEPTION = "GeneralServiceException"
    ALREADY_EXISTS = "AlreadyExists"
    NOT_STABILIZED = "NotStabilized"


# =============================================================================
# Resource Model
# =============================================================================


class AmazonMskCluster(BaseModel):
    """Reference to an MSK cluster taking part in replication."""

    model_config = _MODEL_CONFIG

    msk_cluster_arn: Annotated[str, Field(min_length=1, alias="MskClusterArn")]


class KafkaClusterClientVpcConfig(BaseModel):
    """Connectivity settings the replicator uses to reach a cluster."""

    model_config = _MODEL_CONFIG

    security_group_ids: set[str] = Field(default_factory=set, alias="SecurityGroupIds")
    subnet_ids: set[str] = Field(default_factory=set, alias="SubnetIds")


class KafkaCluster(BaseModel):
    """One cluster endpoint of the replicator."""

    model_config = _MODEL_CONFIG

    amazon_msk_cluster: AmazonMskCluster = Field(alias="AmazonMskCluster")
    vpc_config: KafkaClusterClientVpcConfig = Field(alias="VpcConfig")


class TopicReplication(BaseModel):
    """Which topics are replicated and how."""

    model_config = _MODEL_CONFIG

    topics_to_replicate: set[str] = Field(default_factory=set, alias="TopicsToReplicate")
    topics_to_exclude: set[str] = Field(default_factory=set, alias="TopicsToExclude")
    copy_topic_configurations: bool | None = Field(None, alias="CopyTopicConfigurations")
    copy_access_control_lists_for_topics: bool | None = Field(
        None, alias="CopyAccessControlListsForTopics"
    )
    detect_and_copy_new_topics: bool | None = Field(None, alias="DetectAndCopyNewTopics")

    @field_validator("topics_to_replicate", "topics_to_exclude", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return set() if v is None else v


class ConsumerGroupReplication(BaseModel):
    """Which consumer groups are replicated and how."""

    model_config = _MODEL_CONFIG

    consumer_groups_to_replicate: set[str] = Field(
        default_factory=set, alias="ConsumerGroupsToReplicate"
    )
    consumer_groups_to_exclude: set[str] = Field(
        default_factory=set, alias="ConsumerGroupsToExclude"
    )
    detect_and_copy_new_consumer_groups: bool | None = Field(
        None, alias="DetectAndCopyNewConsumerGroups"
    )
    synchronise_consumer_group_offsets: bool | None = Field(
        None, alias="SynchroniseConsumerGroupOffsets"
    )

    @field_validator("consumer_groups_to_replicate", "consumer_groups_to_exclude", mode="before")
    @classmethod
    def none_is_empty(cls, v: Any) -> Any:
        return set() if v is None else v


class ReplicationInfo(BaseModel):
    """A source to target cluster pairing with its replication settings.

    Within a ResourceModel an entry is identified by its (source, target) pair.
    """

    model_config = _MODEL_CONFIG

    source_kafka_cluster_arn: Annotated[str, Field(min_length=1, alias="SourceKafkaClusterArn")]
    target_kafka_cluster_arn: Annotated[str, Field(min_length=1, alias="TargetKafkaClusterArn")]
    target_compression_type: str | None = Field(None, alias="TargetCompressionType")
    topic_replication: TopicReplication = Field(
        default_factory=TopicReplication, alias="TopicReplication"
    )
    consumer_group_replication: ConsumerGroupReplication = Field(
        default_factory=ConsumerGroupReplication, alias="ConsumerGroupReplication"
    )

    @field_validator("target_compression_type")
    @classmethod
    def validate_compression(cls, v: str | None) -> str | None:
        if v is not None and v not in VALID_COMPRESSION_TYPES:
            raise ValueError(f"TargetCompressionType must be one of {sorted(VALID_COMPRESSION_TYPES)}")
        return v

    @property
    def key(self) -> tuple[str, str]:
        return (self.source_kafka_cluster_arn, self.target_kafka_cluster_arn)


class ResourceModel(BaseModel):
    """Desired or observed configuration of one replicator.

    Replaced wholesale by a fresh read; the only in-place change is the
    backfill of replicator_arn once the service has assigned it.
    """

    model_config = _MODEL_CONFIG

    replicator_arn: str | None = Field(None, alias="ReplicatorArn")
    replicator_name: str | None = Field(None, alias="ReplicatorName")
    description: str | None = Field(None, alias="Description")
    kafka_clusters: list[KafkaCluster] = Field(default_factory=list, alias="KafkaClusters")
    replication_info_list: list[ReplicationInfo] = Field(
        default_factory=list, alias="ReplicationInfoList"
    )
    service_execution_role_arn: str | None = Field(None, alias="ServiceExecutionRoleArn")
    tags: dict[str, str] = Field(default_factory=dict, alias="Tags")
    current_version: str | None = Field(None, alias="CurrentVersion")

    @field_validator("tags", mode="before")
    @classmethod
    def tags_from_key_value_list(cls, v: Any) -> Any:
        # CloudFormation templates express tags as [{Key, Value}, ...]
        if v is None:
            return {}
        if isinstance(v, list):
            try:
                return {item["Key"]: item["Value"] for item in v}
            except (KeyError, TypeError) as e:
                raise ValueError("Tags list entries must have Key and Value") from e
        return v

    def to_output(self) -> dict[str, Any]:
        """Serialize using wire names, dropping unset fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# Handler Protocol
# =============================================================================


class CallbackContext(BaseModel):
    """State carried between invocations of one operation.

    Holds only stage bookkeeping, the stage start time used for timeouts, and
    the replicator ARN once the service has assigned it. Round-trips through
    JSON so the host can persist it between invocations.
    """

    model_config = {"extra": "ignore"}

    stage: str | None = None
    stage_started_at: float | None = None
    completed_stages: list[str] = Field(default_factory=list)
    replicator_arn: str | None = None

    def has_entered(self, stage: str) -> bool:
        return self.stage == stage or stage in self.completed_stages

    def is_complete(self, stage: str) -> bool:
        return stage in self.completed_stages

    def enter(self, stage: str, now: float) -> CallbackContext:
        return self.model_copy(update={"stage": stage, "stage_started_at": now})

    def complete(self, stage: str) -> CallbackContext:
        return self.model_copy(
            update={
                "stage": None,
                "stage_started_at": None,
                "completed_stages": [*self.completed_stages, stage],
            }
        )

    def elapsed(self, now: float) -> float:
        if self.stage_started_at is None:
            return 0.0
        return now - self.stage_started_at


@dataclass(frozen=True)
class HandlerRequest:
    """One invocation's input as supplied by the host."""

    desired_resource_state: ResourceModel
    client_request_token: str
    previous_resource_state: ResourceModel | None = None
    next_token: str | None = None
    desired_resource_tags: dict[str, str] = field(default_factory=dict)
    previous_resource_tags: dict[str, str] = field(default_factory=dict)

    def with_desired(self, model: ResourceModel) -> HandlerRequest:
        return replace(self, desired_resource_state=model)


@dataclass
class ProgressEvent:
    """Outcome of one handler invocation.

    An IN_PROGRESS event with a zero callback delay means "keep going in this
    invocation"; with a positive delay it asks the host to re-invoke later.
    """

    status: OperationStatus
    resource_model: ResourceModel | None = None
    resource_models: list[ResourceModel] | None = None
    callback_context: CallbackContext | None = None
    callback_delay_seconds: int = 0
    error_code: HandlerErrorCode | None = None
    message: str | None = None
    next_token: str | None = None

    @classmethod
    def progress(cls, model: ResourceModel | None, context: CallbackContext) -> ProgressEvent:
        return cls(status=OperationStatus.IN_PROGRESS, resource_model=model, callback_context=context)

    @classmethod
    def defer(
        cls, model: ResourceModel | None, context: CallbackContext, delay_seconds: int
    ) -> ProgressEvent:
        return cls(
            status=OperationStatus.IN_PROGRESS,
            resource_model=model,
            callback_context=context,
            callback_delay_seconds=delay_seconds,
        )

    @classmethod
    def success(cls, model: ResourceModel | None) -> ProgressEvent:
        return cls(status=OperationStatus.SUCCESS, resource_model=model)

    @classmethod
    def failed(
        cls, model: ResourceModel | None, code: HandlerErrorCode, message: str
    ) -> ProgressEvent:
        return cls(
            status=OperationStatus.FAILED,
            resource_model=model,
            error_code=code,
            message=message,
        )

    @property
    def can_continue(self) -> bool:
        return self.status == OperationStatus.IN_PROGRESS and self.callback_delay_seconds == 0

    def then(self, step: Callable[[ProgressEvent], ProgressEvent]) -> ProgressEvent:
        """Run the next step only if this one finished within the invocation."""
        if not self.can_continue:
            return self
        return step(self)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"status": self.status.value}
        if self.resource_model is not None:
            data["resourceModel"] = self.resource_model.to_output()
        if self.resource_models is not None:
            data["resourceModels"] = [m.to_output() for m in self.resource_models]
        if self.next_token is not None:
            data["nextToken"] = self.next_token
        if self.status == OperationStatus.IN_PROGRESS and self.callback_context is not None:
            data["callbackContext"] = self.callback_context.model_dump(mode="json")
            data["callbackDelaySeconds"] = self.callback_delay_seconds
        if self.error_code is not None:
            data["errorCode"] = self.error_code.value
        if self.message is not None:
            data["message"] = self.message
        return data
