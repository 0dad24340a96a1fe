# core/operations.py
"""
Deferred mutations recorded while the blog API is unreachable.

Each variant is its own frozen dataclass; `QueuedOperation` is the union of
them. On disk every operation is a JSON object tagged with `type`
(`create`, `update`, `delete`, `updateOrder`) and a `timestamp` in epoch
milliseconds, which is the format the operationsQueue blob has always used.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Union

OP_CREATE = "create"
OP_UPDATE = "update"
OP_DELETE = "delete"
OP_UPDATE_ORDER = "updateOrder"


class UnknownOperationError(ValueError):
    """Raised when a persisted operation carries a type tag we don't know."""


@dataclass(frozen=True)
class OrderUpdate:
    id: str
    order: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "order": self.order}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderUpdate":
        return cls(id=str(data["id"]), order=int(data["order"]))


@dataclass(frozen=True)
class CreateOperation:
    data: Dict[str, Any]
    timestamp: Optional[int] = None
    type: str = field(default=OP_CREATE, init=False)


@dataclass(frozen=True)
class UpdateOperation:
    id: str
    data: Dict[str, Any]
    timestamp: Optional[int] = None
    type: str = field(default=OP_UPDATE, init=False)


@dataclass(frozen=True)
class DeleteOperation:
    id: str
    timestamp: Optional[int] = None
    type: str = field(default=OP_DELETE, init=False)


@dataclass(frozen=True)
class UpdateOrderOperation:
    updates: List[OrderUpdate]
    timestamp: Optional[int] = None
    type: str = field(default=OP_UPDATE_ORDER, init=False)


QueuedOperation = Union[CreateOperation, UpdateOperation, DeleteOperation, UpdateOrderOperation]


def stamped(operation: QueuedOperation, timestamp: int) -> QueuedOperation:
    """Copy of `operation` carrying the given enqueue timestamp."""
    return replace(operation, timestamp=timestamp)


def operation_to_dict(operation: QueuedOperation) -> Dict[str, Any]:
    if isinstance(operation, CreateOperation):
        payload: Dict[str, Any] = {"type": OP_CREATE, "data": dict(operation.data)}
    elif isinstance(operation, UpdateOperation):
        payload = {"type": OP_UPDATE, "id": operation.id, "data": dict(operation.data)}
    elif isinstance(operation, DeleteOperation):
        payload = {"type": OP_DELETE, "id": operation.id}
    elif isinstance(operation, UpdateOrderOperation):
        payload = {"type": OP_UPDATE_ORDER, "updates": [u.to_dict() for u in operation.updates]}
    else:
        raise TypeError(f"Not a queued operation: {operation!r}")

    if operation.timestamp is not None:
        payload["timestamp"] = operation.timestamp
    return payload


def operation_from_dict(data: Dict[str, Any]) -> QueuedOperation:
    if not isinstance(data, dict):
        raise UnknownOperationError(f"Queued operation must be an object, got {type(data).__name__}")

    op_type = data.get("type")
    timestamp = data.get("timestamp")
    timestamp = int(timestamp) if isinstance(timestamp, (int, float)) else None

    try:
        if op_type == OP_CREATE:
            return CreateOperation(data=dict(data.get("data") or {}), timestamp=timestamp)
        if op_type == OP_UPDATE:
            return UpdateOperation(id=str(data["id"]), data=dict(data.get("data") or {}), timestamp=timestamp)
        if op_type == OP_DELETE:
            return DeleteOperation(id=str(data["id"]), timestamp=timestamp)
        if op_type == OP_UPDATE_ORDER:
            updates = [OrderUpdate.from_dict(u) for u in data.get("updates") or []]
            return UpdateOrderOperation(updates=updates, timestamp=timestamp)
    except (KeyError, TypeError, ValueError) as e:
        raise UnknownOperationError(f"Malformed {op_type!r} operation: {e}") from e

    raise UnknownOperationError(f"Unknown operation type: {op_type!r}")
