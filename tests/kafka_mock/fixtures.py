"""Builders for replicator desired states and handler requests."""

from __future__ import annotations

from typing import Any

from replicator.models import HandlerRequest, ResourceModel

SOURCE_CLUSTER_ARN = (
    "arn:aws:kafka:us-east-1:123456789012:cluster/source/11111111-2222-3333-4444-555555555555-1"
)
TARGET_CLUSTER_ARN = (
    "arn:aws:kafka:us-west-2:123456789012:cluster/target/66666666-7777-8888-9999-000000000000-1"
)
ROLE_ARN = "arn:aws:iam::123456789012:role/msk-replicator"
TOKEN = "11111111-aaaa-bbbb-cccc-222222222222"


def model_properties(**overrides: Any) -> dict[str, Any]:
    """Wire-format properties of a replicator between the two test clusters."""
    data: dict[str, Any] = {
        "ReplicatorName": "orders-replicator",
        "Description": "Replicates orders topics",
        "KafkaClusters": [
            {
                "AmazonMskCluster": {"MskClusterArn": SOURCE_CLUSTER_ARN},
                "VpcConfig": {"SubnetIds": ["subnet-a", "subnet-b"], "SecurityGroupIds": ["sg-1"]},
            },
            {
                "AmazonMskCluster": {"MskClusterArn": TARGET_CLUSTER_ARN},
                "VpcConfig": {"SubnetIds": ["subnet-c"], "SecurityGroupIds": ["sg-2"]},
            },
        ],
        "ReplicationInfoList": [
            {
                "SourceKafkaClusterArn": SOURCE_CLUSTER_ARN,
                "TargetKafkaClusterArn": TARGET_CLUSTER_ARN,
                "TargetCompressionType": "GZIP",
                "TopicReplication": {
                    "TopicsToReplicate": ["orders.*"],
                    "CopyTopicConfigurations": True,
                    "DetectAndCopyNewTopics": True,
                },
                "ConsumerGroupReplication": {
                    "ConsumerGroupsToReplicate": ["billing"],
                    "SynchroniseConsumerGroupOffsets": True,
                },
            }
        ],
        "ServiceExecutionRoleArn": ROLE_ARN,
        "Tags": {"team": "data"},
    }
    data.update(overrides)
    return data


def make_model(**overrides: Any) -> ResourceModel:
    return ResourceModel.model_validate(model_properties(**overrides))


def make_request(model: ResourceModel, **kwargs: Any) -> HandlerRequest:
    return HandlerRequest(desired_resource_state=model, client_request_token=TOKEN, **kwargs)
