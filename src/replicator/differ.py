"""Detection of which mutable attribute groups an update changes.

The replicator API accepts one kind of change per request. Each mutable
group has a detector ``(desired, current) -> bool``; an update is valid when
at most one detector fires and, for replication info, at most one entry
changed.

Entries are matched on their (source, target) cluster pair. An entry present
on only one side is not matched and so never reported as changed.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .models import ConsumerGroupReplication, ReplicationInfo, ResourceModel, TopicReplication

logger = logging.getLogger(__name__)


def is_topic_replication_updated(desired: TopicReplication, current: TopicReplication) -> bool:
    return not (
        desired.topics_to_replicate == current.topics_to_replicate
        and desired.topics_to_exclude == current.topics_to_exclude
        and desired.copy_topic_configurations == current.copy_topic_configurations
        and desired.detect_and_copy_new_topics == current.detect_and_copy_new_topics
        and desired.copy_access_control_lists_for_topics
        == current.copy_access_control_lists_for_topics
    )


def is_consumer_group_replication_updated(
    desired: ConsumerGroupReplication, current: ConsumerGroupReplication
) -> bool:
    return not (
        desired.consumer_groups_to_replicate == current.consumer_groups_to_replicate
        and desired.consumer_groups_to_exclude == current.consumer_groups_to_exclude
        and desired.detect_and_copy_new_consumer_groups
        == current.detect_and_copy_new_consumer_groups
        and desired.synchronise_consumer_group_offsets
        == current.synchronise_consumer_group_offsets
    )


def get_updated_replication_infos(
    desired: ResourceModel, current: ResourceModel
) -> list[ReplicationInfo]:
    """Desired entries whose topic or consumer group settings differ from current."""
    current_by_key: dict[tuple[str, str], list[ReplicationInfo]] = {}
    for info in current.replication_info_list:
        current_by_key.setdefault(info.key, []).append(info)

    updated: list[ReplicationInfo] = []
    for desired_info in desired.replication_info_list:
        for current_info in current_by_key.get(desired_info.key, []):
            if is_topic_replication_updated(
                desired_info.topic_replication, current_info.topic_replication
            ) or is_consumer_group_replication_updated(
                desired_info.consumer_group_replication, current_info.consumer_group_replication
            ):
                updated.append(desired_info)
    return updated


@dataclass(frozen=True)
class ChangeDetector:
    """A named predicate telling whether one mutable group changed."""

    name: str
    detect: Callable[[ResourceModel, ResourceModel], bool]


UPDATE_REPLICATION_INFO = ChangeDetector(
    name="replication_info",
    detect=lambda desired, current: bool(get_updated_replication_infos(desired, current)),
)

CHANGE_DETECTORS: tuple[ChangeDetector, ...] = (UPDATE_REPLICATION_INFO,)


@dataclass(frozen=True)
class UpdatePlan:
    """Result of diffing desired against current state."""

    changed_groups: tuple[str, ...]
    updated_replication_infos: tuple[ReplicationInfo, ...]

    @property
    def is_valid(self) -> bool:
        return len(self.changed_groups) <= 1 and len(self.updated_replication_infos) <= 1

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_groups)


def plan_update(
    desired: ResourceModel,
    current: ResourceModel,
    detectors: tuple[ChangeDetector, ...] = CHANGE_DETECTORS,
) -> UpdatePlan:
    changed = tuple(d.name for d in detectors if d.detect(desired, current))
    plan = UpdatePlan(
        changed_groups=changed,
        updated_replication_infos=tuple(get_updated_replication_infos(desired, current)),
    )
    if changed:
        logger.info(
            "Found request to update replicator %s",
            current.replicator_arn,
            extra={
                "replicator_arn": current.replicator_arn,
                "changed_groups": list(changed),
                "updated_replication_infos": len(plan.updated_replication_infos),
            },
        )
    return plan
