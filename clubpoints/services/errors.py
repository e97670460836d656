"""
clubpoints.services.errors — Flow Errors & Structured Results
==============================================================

Every caller-facing service operation runs through :func:`run_flow`, which
turns domain errors and database failures into a :class:`FlowResult` so no
flow can crash the process.  Routes map ``error_kind`` onto HTTP statuses.

Members missing from a reconciliation batch are not errors at all: the
reconciler skips them and reports the count in ``FlowResult.data``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, ParamSpec

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

P = ParamSpec("P")

NOT_FOUND = "not_found"
INVALID_STATE = "invalid_state"
PERSISTENCE = "persistence"
INVALID_INPUT = "invalid_input"


class LedgerError(Exception):
    """Base class for expected, reportable flow failures."""

    kind = "error"


class NotFoundError(LedgerError):
    """A referenced member or event does not exist."""

    kind = NOT_FOUND


class InvalidStateError(LedgerError):
    """The target is in the wrong lifecycle state for the operation."""

    kind = INVALID_STATE


@dataclass
class FlowResult:
    """Outcome of one caller-facing operation."""

    success: bool
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: str | None = None

    @classmethod
    def ok(cls, message: str, **data: Any) -> FlowResult:
        return cls(success=True, message=message, data=data)

    @classmethod
    def failed(cls, message: str, kind: str) -> FlowResult:
        return cls(success=False, message=message, error_kind=kind)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success, "message": self.message}
        if self.data:
            payload["data"] = self.data
        if self.error_kind:
            payload["error"] = self.error_kind
        return payload


def run_flow(
    name: str, func: Callable[P, FlowResult], *args: P.args, **kwargs: P.kwargs
) -> FlowResult:
    """Run *func* and convert any failure into a failed :class:`FlowResult`."""
    try:
        return func(*args, **kwargs)
    except LedgerError as exc:
        logger.warning("%s rejected: %s", name, exc)
        return FlowResult.failed(str(exc), exc.kind)
    except ValueError as exc:
        # Bad enum values (status, category) from non-HTTP callers
        logger.warning("%s rejected: %s", name, exc)
        return FlowResult.failed(str(exc), INVALID_INPUT)
    except SQLAlchemyError:
        logger.exception("%s failed: database error, transaction rolled back", name)
        return FlowResult.failed(f"{name} failed: could not persist changes", PERSISTENCE)
