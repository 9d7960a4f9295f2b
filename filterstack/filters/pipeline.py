"""
Filter stack: the caller-owned, ordered list of filter instances.

Storage order is newest-first: :meth:`FilterStack.add` prepends, so the
first element is the top of the stack. Execution runs bottom-up, i.e. in
the reverse of storage order; :func:`execution_order` is the one place that
conversion happens.

Usage:
    from filterstack.filters.pipeline import FilterStack

    stack = FilterStack.default()
    blur = stack.add('blur')
    stack.update_params(blur.id, size=3)
    stack.toggle(blur.id)
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Sequence

import numpy as np
from pydantic import ValidationError

from ..exceptions import InvalidParamsError, PipelineError
from .instances import (
    CustomConvParams,
    FilterInstance,
    FilterKind,
    FilterParams,
    params_class_for,
)

logger = logging.getLogger(__name__)

# Storage order of a fresh stack (hue on top, brightness applied first)
DEFAULT_STACK_KINDS = (
    FilterKind.HUE,
    FilterKind.VIBRANCE,
    FilterKind.SATURATION,
    FilterKind.CONTRAST,
    FilterKind.BRIGHTNESS,
)


def execution_order(instances: Sequence[FilterInstance]) -> list[FilterInstance]:
    """Storage order (newest first) to execution order (oldest first)."""
    return list(reversed(instances))


def validate_unique_ids(instances: Iterable[FilterInstance]) -> None:
    """Raise PipelineError if any id appears twice."""
    seen: set[str] = set()
    for inst in instances:
        if inst.id in seen:
            raise PipelineError(f"Duplicate filter id: {inst.id}")
        seen.add(inst.id)


def resize_custom_kernel(kernel: Sequence[Sequence[float]], new_size: int) -> list[list[float]]:
    """Embed a kernel centered in a kernel of another size.

    Weights are copied with offset ``floor((new - old) / 2)``; shrinking
    crops the border. When expanding, a center cell that is still zero
    after the copy is set to 1.
    """
    old = np.asarray(kernel, dtype=np.float64)
    old_size = old.shape[0]
    offset = (new_size - old_size) // 2
    resized = np.zeros((new_size, new_size))
    if offset >= 0:
        resized[offset:offset + old_size, offset:offset + old_size] = old
    else:
        resized[:, :] = old[-offset:-offset + new_size, -offset:-offset + new_size]
    center = new_size // 2
    if new_size > old_size and resized[center, center] == 0:
        resized[center, center] = 1.0
    return resized.tolist()


@dataclass
class FilterStack:
    """Mutation operations over an ordered list of filter instances.

    The list is held by reference; every operation edits it in place, so a
    caller that owns the list sees the changes.

    :param instances: Instances in storage order (newest first)
    """
    instances: list[FilterInstance] = field(default_factory=list)

    def __post_init__(self):
        validate_unique_ids(self.instances)

    @classmethod
    def default(cls) -> 'FilterStack':
        """Starter stack: hue, vibrance, saturation, contrast, brightness."""
        return cls([FilterInstance.create(kind) for kind in DEFAULT_STACK_KINDS])

    @classmethod
    def from_dicts(cls, items: Iterable[Mapping[str, Any]]) -> 'FilterStack':
        return cls([FilterInstance.from_dict(item) for item in items])

    def to_dicts(self) -> list[dict[str, Any]]:
        return [inst.to_dict() for inst in self.instances]

    def __len__(self) -> int:
        return len(self.instances)

    def __iter__(self) -> Iterator[FilterInstance]:
        return iter(self.instances)

    def __getitem__(self, index: int) -> FilterInstance:
        return self.instances[index]

    def execution_order(self) -> list[FilterInstance]:
        return execution_order(self.instances)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def index_of(self, instance_id: str) -> int:
        for index, inst in enumerate(self.instances):
            if inst.id == instance_id:
                return index
        raise PipelineError(f"Unknown filter id: {instance_id}")

    def get(self, instance_id: str) -> FilterInstance:
        return self.instances[self.index_of(instance_id)]

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, kind: FilterKind | str, params: Mapping[str, Any] | FilterParams | None = None) -> FilterInstance:
        """Create an instance with default (or given) params and put it on top."""
        return self.add_instance(FilterInstance.create(kind, params))

    def add_instance(self, instance: FilterInstance) -> FilterInstance:
        if any(inst.id == instance.id for inst in self.instances):
            raise PipelineError(f"Duplicate filter id: {instance.id}")
        self.instances.insert(0, instance)
        logger.debug(f"Added {instance.kind.value} filter {instance.id}")
        return instance

    def duplicate(self, instance_id: str) -> FilterInstance:
        """Copy an instance under a new id, directly after the original."""
        index = self.index_of(instance_id)
        copy = self.instances[index].model_copy(deep=True, update={'id': str(uuid.uuid4())})
        self.instances.insert(index + 1, copy)
        logger.debug(f"Duplicated filter {instance_id} as {copy.id}")
        return copy

    def remove(self, instance_id: str) -> FilterInstance:
        removed = self.instances.pop(self.index_of(instance_id))
        logger.debug(f"Removed filter {instance_id}")
        return removed

    def toggle(self, instance_id: str) -> bool:
        """Flip ``enabled``; returns the new state."""
        inst = self.get(instance_id)
        inst.enabled = not inst.enabled
        return inst.enabled

    def move(self, active_id: str, over_id: str) -> None:
        """Move ``active_id`` to the current position of ``over_id``."""
        old_index = self.index_of(active_id)
        new_index = self.index_of(over_id)
        if old_index == new_index:
            return
        moved = self.instances.pop(old_index)
        self.instances.insert(new_index, moved)
        logger.debug(f"Moved filter {active_id} from {old_index} to {new_index}")

    def update_params(self, instance_id: str, params: Mapping[str, Any] | FilterParams | None = None,
                      **changes: Any) -> FilterInstance:
        """Replace an instance's params; the kind never changes.

        ``params`` replaces the params wholesale; keyword ``changes`` are
        merged on top of the current (or given) values. The result is
        validated against the kind's params model.

        Raises:
            InvalidParamsError: Values out of range or of the wrong shape
        """
        index = self.index_of(instance_id)
        inst = self.instances[index]
        params_cls = params_class_for(inst.kind)
        if isinstance(params, FilterParams):
            base = params.model_dump()
        elif params is not None:
            base = dict(params)
        else:
            base = inst.params.model_dump()
        base.update(changes)
        try:
            new_params = params_cls.model_validate(base)
        except ValidationError as exc:
            raise InvalidParamsError(f"Invalid params for {inst.kind.value!r}: {exc}") from exc
        updated = inst.with_params(new_params)
        self.instances[index] = updated
        return updated

    def resize_kernel(self, instance_id: str, new_size: int) -> FilterInstance:
        """Resize a custom convolution kernel, keeping its weights centered."""
        inst = self.get(instance_id)
        if not isinstance(inst.params, CustomConvParams):
            raise PipelineError(f"Filter {instance_id} is {inst.kind.value}, not a custom convolution")
        kernel = resize_custom_kernel(inst.params.kernel, new_size)
        return self.update_params(instance_id, size=new_size, kernel=kernel)


__all__ = [
    'DEFAULT_STACK_KINDS', 'execution_order', 'validate_unique_ids', 'resize_custom_kernel',
    'FilterStack',
]
