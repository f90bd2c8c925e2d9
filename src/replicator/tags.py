"""Tag set algebra for updates."""

from __future__ import annotations

from dataclasses import dataclass, field

from .models import HandlerRequest, ResourceModel


@dataclass(frozen=True)
class TagDelta:
    """Tags to attach and tag keys to detach."""

    to_add: dict[str, str] = field(default_factory=dict)
    to_remove: set[str] = field(default_factory=set)

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def generate_tags_to_add(previous: dict[str, str], desired: dict[str, str]) -> dict[str, str]:
    return {
        key: value
        for key, value in desired.items()
        if key not in previous or previous[key] != value
    }


def generate_tags_to_remove(previous: dict[str, str], desired: dict[str, str]) -> set[str]:
    return set(previous) - set(desired)


def compute_delta(previous: dict[str, str], desired: dict[str, str]) -> TagDelta:
    return TagDelta(
        to_add=generate_tags_to_add(previous, desired),
        to_remove=generate_tags_to_remove(previous, desired),
    )


def previous_tags(request: HandlerRequest, current: ResourceModel) -> dict[str, str]:
    """Tags attached before this update.

    Falls back to the live tags when the host supplied no previous state.
    """
    if request.previous_resource_state is None:
        return {**request.previous_resource_tags, **current.tags}
    return {**request.previous_resource_tags, **request.previous_resource_state.tags}


def desired_tags(request: HandlerRequest) -> dict[str, str]:
    return {**request.desired_resource_tags, **request.desired_resource_state.tags}
