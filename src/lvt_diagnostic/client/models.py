"""Queued queries and the pending operations that carry them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lvt_diagnostic.exceptions import HandleNotResolvedError

_UNRESOLVED: Any = object()


@dataclass(slots=True, eq=False)
class QueryHandle:
    """A single query queued on a session.

    The value becomes readable once a batch containing the query has been
    transmitted successfully. Handles compare by identity.
    """

    query_id: int
    action: str
    params: dict[str, Any] = field(default_factory=dict)
    _value: Any = field(default=_UNRESOLVED, repr=False)

    @property
    def resolved(self) -> bool:
        return self._value is not _UNRESOLVED

    @property
    def value(self) -> Any:
        if not self.resolved:
            raise HandleNotResolvedError(
                f"Query {self.query_id} ({self.action}) has not been executed yet."
            )
        return self._value

    def resolve(self, value: Any) -> None:
        self._value = value

    def to_payload(self) -> dict[str, Any]:
        return {"id": self.query_id, "action": self.action, "params": self.params}


@dataclass(slots=True, eq=False)
class PendingOperation:
    """A frozen batch of queries bound to one session sequence number.

    The remote service ties a batch to its sequence number, so a throttled
    operation must be resent as this same object rather than rebuilt from
    its queries. Operations compare by identity.
    """

    sequence: int
    queries: tuple[QueryHandle, ...]
    transmissions: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "sequence": self.sequence,
            "queries": [query.to_payload() for query in self.queries],
        }
