"""
Result reconciliation.

Both the synchronous path and bulk operations report through SyncSummary,
so callers always get the same shape back.
"""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

logger = logging.getLogger(__name__)


class SyncMode(str, Enum):
    SYNCHRONOUS = "synchronous"
    BULK = "bulk"


class ErrorKind(str, Enum):
    """Why a sync attempt stopped short."""
    VALIDATION = "validation"
    CONFLICT = "conflict"
    TRANSPORT = "transport"
    JOB_FAILED = "job_failed"
    JOB_CANCELED = "job_canceled"
    TIMEOUT = "timeout"


class SyncOutcome(str, Enum):
    """What the caller should do next."""
    APPLIED = "applied"  # everything succeeded
    PARTIAL = "partial"  # some changes applied, reconcile manually
    NOT_APPLIED = "not_applied"  # nothing happened, safe to retry
    PENDING = "pending"  # bulk operation still running remotely


# These errors are raised before anything is written
_NOTHING_WRITTEN = (ErrorKind.VALIDATION, ErrorKind.CONFLICT)


@dataclass
class SyncSummary:
    """Aggregated result of one sync attempt."""

    mode: SyncMode = SyncMode.SYNCHRONOUS
    total: int = 0
    successful: int = 0
    failed: int = 0
    unparsable: int = 0
    errors: List[str] = field(default_factory=list)

    error_kind: Optional[ErrorKind] = None
    error_message: Optional[str] = None

    pending: bool = False
    job: Optional[Dict[str, Any]] = None
    partial_results: Optional["SyncSummary"] = None

    @property
    def success_rate(self) -> float:
        """Percentage of successful records, 0 for an empty result."""
        if self.total == 0:
            return 0.0
        return self.successful / self.total * 100

    @property
    def outcome(self) -> SyncOutcome:
        if self.pending:
            return SyncOutcome.PENDING
        if self.error_kind in _NOTHING_WRITTEN:
            return SyncOutcome.NOT_APPLIED
        if self.error_kind == ErrorKind.TRANSPORT and self.job is None and self.successful == 0:
            # Failed before a bulk operation was accepted
            return SyncOutcome.NOT_APPLIED
        if self.error_kind is None:
            if self.failed == 0 and self.unparsable == 0:
                return SyncOutcome.APPLIED
            if self.successful == 0 and self.unparsable == 0:
                # productSet is atomic per product, failed lines wrote nothing
                return SyncOutcome.NOT_APPLIED
        return SyncOutcome.PARTIAL

    def record_success(self) -> None:
        self.total += 1
        self.successful += 1

    def record_failure(self, message: str) -> None:
        self.total += 1
        self.failed += 1
        self.errors.append(message)

    def record_unparsable(self) -> None:
        self.unparsable += 1

    def fail(self, kind: ErrorKind, message: str) -> "SyncSummary":
        self.error_kind = kind
        self.error_message = message
        return self

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "mode": self.mode.value,
            "outcome": self.outcome.value,
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "unparsable": self.unparsable,
            "successRate": f"{self.success_rate:.1f}",
            "errors": list(self.errors),
            "errorKind": self.error_kind.value if self.error_kind else None,
            "errorMessage": self.error_message,
        }
        if self.job is not None:
            data["bulkOperation"] = self.job
        if self.partial_results is not None:
            data["partialResults"] = self.partial_results.to_dict()
        return data


def extract_user_errors(result: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    userErrors from one bulk result line.

    Lines look like ``{"data": {"productSet": {..., "userErrors": [...]}}}``;
    a bare ``{"userErrors": [...]}`` is accepted too. GraphQL ``errors``
    count as failures as well.
    """
    errors: List[Dict[str, Any]] = list(result.get("userErrors") or [])

    data = result.get("data")
    if isinstance(data, dict):
        for payload in data.values():
            if isinstance(payload, dict):
                errors.extend(payload.get("userErrors") or [])
                operation = payload.get("productSetOperation")
                if isinstance(operation, dict):
                    errors.extend(operation.get("userErrors") or [])

    graphql_errors = result.get("errors")
    if isinstance(graphql_errors, list):
        errors.extend(e if isinstance(e, dict) else {"message": str(e)} for e in graphql_errors)

    return errors


def _describe(result: Dict[str, Any]) -> str:
    data = result.get("data")
    if isinstance(data, dict):
        for payload in data.values():
            product = payload.get("product") if isinstance(payload, dict) else None
            if isinstance(product, dict) and product.get("id"):
                return product["id"]
    line_number = result.get("__lineNumber")
    if line_number is not None:
        return f"line {line_number}"
    return "result"


class ResultReconciler:
    """Classifies bulk result lines into a SyncSummary."""

    def __init__(self, summary: Optional[SyncSummary] = None):
        self.summary = summary or SyncSummary(mode=SyncMode.BULK)

    def add_line(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        try:
            result = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse result line: {e}")
            self.summary.record_unparsable()
            return
        if not isinstance(result, dict):
            logger.warning("Skipping result line that is not a JSON object")
            self.summary.record_unparsable()
            return
        self.add_result(result)

    def add_result(self, result: Dict[str, Any]) -> None:
        user_errors = extract_user_errors(result)
        if user_errors:
            messages = "; ".join(e.get("message", str(e)) for e in user_errors)
            self.summary.record_failure(f"{_describe(result)}: {messages}")
        else:
            self.summary.record_success()

    def add_lines(self, lines: Iterable[str]) -> SyncSummary:
        for line in lines:
            self.add_line(line)
        return self.summary
