"""Translation between ResourceModel and boto3 kafka client shapes.

Request builders return keyword arguments for the matching client method.
Sets are sent as sorted lists so requests are deterministic.
"""

from __future__ import annotations

from typing import Any

from .models import (
    AmazonMskCluster,
    ConsumerGroupReplication,
    KafkaCluster,
    KafkaClusterClientVpcConfig,
    ReplicationInfo,
    ResourceModel,
    TopicReplication,
)


def _drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _topic_replication(topic: TopicReplication) -> dict[str, Any]:
    return _drop_none(
        {
            "TopicsToReplicate": sorted(topic.topics_to_replicate),
            "TopicsToExclude": sorted(topic.topics_to_exclude),
            "CopyTopicConfigurations": topic.copy_topic_configurations,
            "CopyAccessControlListsForTopics": topic.copy_access_control_lists_for_topics,
            "DetectAndCopyNewTopics": topic.detect_and_copy_new_topics,
        }
    )


def _consumer_group_replication(group: ConsumerGroupReplication) -> dict[str, Any]:
    return _drop_none(
        {
            "ConsumerGroupsToReplicate": sorted(group.consumer_groups_to_replicate),
            "ConsumerGroupsToExclude": sorted(group.consumer_groups_to_exclude),
            "DetectAndCopyNewConsumerGroups": group.detect_and_copy_new_consumer_groups,
            "SynchroniseConsumerGroupOffsets": group.synchronise_consumer_group_offsets,
        }
    )


def to_create_request(model: ResourceModel) -> dict[str, Any]:
    return _drop_none(
        {
            "ReplicatorName": model.replicator_name,
            "Description": model.description,
            "KafkaClusters": [
                {
                    "AmazonMskCluster": {"MskClusterArn": cluster.amazon_msk_cluster.msk_cluster_arn},
                    "VpcConfig": _drop_none(
                        {
                            "SecurityGroupIds": sorted(cluster.vpc_config.security_group_ids) or None,
                            "SubnetIds": sorted(cluster.vpc_config.subnet_ids),
                        }
                    ),
                }
                for cluster in model.kafka_clusters
            ],
            "ReplicationInfoList": [
                _drop_none(
                    {
                        "SourceKafkaClusterArn": info.source_kafka_cluster_arn,
                        "TargetKafkaClusterArn": info.target_kafka_cluster_arn,
                        "TargetCompressionType": info.target_compression_type,
                        "TopicReplication": _topic_replication(info.topic_replication),
                        "ConsumerGroupReplication": _consumer_group_replication(
                            info.consumer_group_replication
                        ),
                    }
                )
                for info in model.replication_info_list
            ],
            "ServiceExecutionRoleArn": model.service_execution_role_arn,
            "Tags": dict(model.tags) or None,
        }
    )


def to_read_request(model: ResourceModel) -> dict[str, Any]:
    return {"ReplicatorArn": model.replicator_arn}


def from_read_response(response: dict[str, Any]) -> ResourceModel:
    """Build a ResourceModel from a DescribeReplicator response.

    Replication entries name clusters by alias; they are resolved back to
    cluster ARNs through the response's cluster list.
    """
    clusters = response.get("KafkaClusters") or []
    alias_to_arn = {
        cluster.get("KafkaClusterAlias"): cluster.get("AmazonMskCluster", {}).get("MskClusterArn")
        for cluster in clusters
    }

    kafka_clusters = [
        KafkaCluster(
            amazon_msk_cluster=AmazonMskCluster(
                msk_cluster_arn=cluster.get("AmazonMskCluster", {}).get("MskClusterArn")
            ),
            vpc_config=KafkaClusterClientVpcConfig(
                security_group_ids=set(cluster.get("VpcConfig", {}).get("SecurityGroupIds") or []),
                subnet_ids=set(cluster.get("VpcConfig", {}).get("SubnetIds") or []),
            ),
        )
        for cluster in clusters
    ]

    replication_info_list = []
    for info in response.get("ReplicationInfoList") or []:
        topic = info.get("TopicReplication") or {}
        group = info.get("ConsumerGroupReplication") or {}
        replication_info_list.append(
            ReplicationInfo(
                source_kafka_cluster_arn=alias_to_arn.get(info.get("SourceKafkaClusterAlias")),
                target_kafka_cluster_arn=alias_to_arn.get(info.get("TargetKafkaClusterAlias")),
                target_compression_type=info.get("TargetCompressionType"),
                topic_replication=TopicReplication(
                    topics_to_replicate=set(topic.get("TopicsToReplicate") or []),
                    topics_to_exclude=set(topic.get("TopicsToExclude") or []),
                    copy_topic_configurations=topic.get("CopyTopicConfigurations"),
                    copy_access_control_lists_for_topics=topic.get(
                        "CopyAccessControlListsForTopics"
                    ),
                    detect_and_copy_new_topics=topic.get("DetectAndCopyNewTopics"),
                ),
                consumer_group_replication=ConsumerGroupReplication(
                    consumer_groups_to_replicate=set(group.get("ConsumerGroupsToReplicate") or []),
                    consumer_groups_to_exclude=set(group.get("ConsumerGroupsToExclude") or []),
                    detect_and_copy_new_consumer_groups=group.get("DetectAndCopyNewConsumerGroups"),
                    synchronise_consumer_group_offsets=group.get("SynchroniseConsumerGroupOffsets"),
                ),
            )
        )

    return ResourceModel(
        replicator_arn=response.get("ReplicatorArn"),
        replicator_name=response.get("ReplicatorName"),
        description=response.get("ReplicatorDescription"),
        current_version=response.get("CurrentVersion"),
        kafka_clusters=kafka_clusters,
        replication_info_list=replication_info_list,
        service_execution_role_arn=response.get("ServiceExecutionRoleArn"),
        tags=response.get("Tags") or {},
    )


def to_update_replication_info_request(
    model: ResourceModel,
    current_version: str | None,
    info: ReplicationInfo,
) -> dict[str, Any]:
    return _drop_none(
        {
            "ReplicatorArn": model.replicator_arn,
            "CurrentVersion": current_version,
            "SourceKafkaClusterArn": info.source_kafka_cluster_arn,
            "TargetKafkaClusterArn": info.target_kafka_cluster_arn,
            "TopicReplication": _topic_replication(info.topic_replication),
            "ConsumerGroupReplication": _consumer_group_replication(info.consumer_group_replication),
        }
    )


def to_delete_request(model: ResourceModel) -> dict[str, Any]:
    return {"ReplicatorArn": model.replicator_arn}


def to_list_request(next_token: str | None) -> dict[str, Any]:
    return _drop_none({"NextToken": next_token})


def from_list_response(response: dict[str, Any]) -> list[ResourceModel]:
    """Identity-only models, one per listed replicator."""
    return [
        ResourceModel(replicator_arn=summary.get("ReplicatorArn"))
        for summary in response.get("Replicators") or []
    ]


def to_tag_request(model: ResourceModel, tags: dict[str, str]) -> dict[str, Any]:
    return {"ResourceArn": model.replicator_arn, "Tags": dict(tags)}


def to_untag_request(model: ResourceModel, tag_keys: set[str]) -> dict[str, Any]:
    return {"ResourceArn": model.replicator_arn, "TagKeys": sorted(tag_keys)}
