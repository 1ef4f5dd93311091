"""Lifecycle engine.

Governs how an issue moves through its lifecycle steps and keeps the coarse
``Issue.status`` consistent with them.

Steps (causal order):
    REPORTED → ACKNOWLEDGED → ASSIGNED → RESOLVED → CITIZEN_VERIFIED

Transition rules:
- creation appends REPORTED(COMPLETED) and ACKNOWLEDGED(CURRENT), status PENDING
- a new non-null assignee appends ASSIGNED(COMPLETED); status is untouched
- status → RESOLVED appends RESOLVED(COMPLETED) unless one already exists
- status → CLOSED only from RESOLVED
- CITIZEN_VERIFIED only once RESOLVED is COMPLETED
- status never moves backwards; COMPLETED records never revert
- IN_PROGRESS requires an assignee

The engine is pure: it turns a snapshot plus requested changes into a
``TransitionPlan``. Repositories persist plans inside their transaction, so
the snapshot must be read inside that same transaction.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from civic_core_lib.core.sla import sla_deadline
from civic_core_lib.errors import InvalidTransitionError
from civic_core_lib.models.issue import (
    Issue,
    IssuePriority,
    IssueStatus,
    LifecycleRecord,
    LifecycleStep,
    StepStatus,
)
from civic_core_lib.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


@dataclass
class TransitionPlan:
    """Changes to persist atomically for one accepted mutation."""

    field_changes: Dict[str, Any] = field(default_factory=dict)
    new_records: List[LifecycleRecord] = field(default_factory=list)
    completed_record_ids: List[str] = field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not (self.field_changes or self.new_records or self.completed_record_ids)

    @property
    def appended_steps(self) -> List[LifecycleStep]:
        return [record.step for record in self.new_records]


def check_status_transition(current: IssueStatus, target: IssueStatus) -> None:
    """Raise InvalidTransitionError unless ``current`` → ``target`` is allowed.

    Staying in the same status is always allowed (and is a no-op).
    """
    if target == current:
        return
    if target == IssueStatus.CLOSED and current != IssueStatus.RESOLVED:
        raise InvalidTransitionError(
            current.value, target.value, "only resolved issues can be closed"
        )
    if target.rank < current.rank:
        raise InvalidTransitionError(
            current.value, target.value, "status cannot move backwards"
        )


class LifecycleEngine:
    """Plans lifecycle transitions against an issue snapshot."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()

    def initial_records(self, at: Optional[datetime] = None) -> List[LifecycleRecord]:
        """Records every new issue starts with."""
        at = at or self.clock.now()
        return [
            LifecycleRecord(step=LifecycleStep.REPORTED, status=StepStatus.COMPLETED, created_at=at),
            LifecycleRecord(step=LifecycleStep.ACKNOWLEDGED, status=StepStatus.CURRENT, created_at=at),
        ]

    def plan_update(self, issue: Issue, changes: Dict[str, Any]) -> TransitionPlan:
        """Plan an update from the fields the caller supplied.

        Args:
            issue: Snapshot read inside the current transaction
            changes: Supplied field values, already authorized

        Returns:
            TransitionPlan (possibly a no-op)

        Raises:
            InvalidTransitionError: On a backward move, closing an unresolved
                issue, or leaving IN_PROGRESS without an assignee
        """
        now = self.clock.now()
        plan = TransitionPlan()

        for name, value in changes.items():
            if getattr(issue, name) != value:
                plan.field_changes[name] = value

        target_status = plan.field_changes.get("status", issue.status)
        target_assignee = plan.field_changes.get("assigned_to_id", issue.assigned_to_id)

        check_status_transition(issue.status, target_status)

        if target_status == IssueStatus.IN_PROGRESS and target_assignee is None:
            raise InvalidTransitionError(
                issue.status.value,
                target_status.value,
                "an in-progress issue must have an assignee",
            )

        if "assigned_to_id" in plan.field_changes and target_assignee is not None:
            self._append(issue, plan, LifecycleStep.ASSIGNED, now)

        if (
            target_status == IssueStatus.RESOLVED
            and not issue.status.is_closed
            and not issue.has_completed(LifecycleStep.RESOLVED)
        ):
            self._append(issue, plan, LifecycleStep.RESOLVED, now)
        elif target_status == IssueStatus.RESOLVED and issue.has_completed(LifecycleStep.RESOLVED):
            logger.debug(f"Issue {issue.id} already has a RESOLVED record; not appending another")

        if "priority" in plan.field_changes:
            plan.field_changes["sla_deadline"] = sla_deadline(
                issue.created_at, IssuePriority(plan.field_changes["priority"])
            )

        if not plan.is_noop:
            plan.field_changes["updated_at"] = now
        return plan

    def plan_verification(self, issue: Issue, notes: Optional[str] = None) -> TransitionPlan:
        """Plan the CITIZEN_VERIFIED acknowledgment.

        Raises:
            InvalidTransitionError: If RESOLVED is not yet COMPLETED
        """
        if not issue.has_completed(LifecycleStep.RESOLVED):
            raise InvalidTransitionError(
                issue.status.value,
                LifecycleStep.CITIZEN_VERIFIED.value,
                "issue must be resolved before it can be verified",
            )

        plan = TransitionPlan()
        if issue.has_completed(LifecycleStep.CITIZEN_VERIFIED):
            return plan

        now = self.clock.now()
        self._append(issue, plan, LifecycleStep.CITIZEN_VERIFIED, now, notes=notes)
        plan.field_changes["updated_at"] = now
        return plan

    def _append(
        self,
        issue: Issue,
        plan: TransitionPlan,
        step: LifecycleStep,
        at: datetime,
        notes: Optional[str] = None,
    ) -> None:
        """Append ``step`` as COMPLETED and conclude earlier CURRENT steps."""
        plan.new_records.append(
            LifecycleRecord(step=step, status=StepStatus.COMPLETED, notes=notes, created_at=at)
        )
        for record in issue.lifecycle:
            if (
                record.status == StepStatus.CURRENT
                and record.step.order < step.order
                and record.id not in plan.completed_record_ids
            ):
                plan.completed_record_ids.append(record.id)


def apply_plan(issue: Issue, plan: TransitionPlan) -> Issue:
    """Return a copy of ``issue`` with ``plan`` applied.

    Only CURRENT records may be flipped, and only to COMPLETED.
    """
    flips = set(plan.completed_record_ids)
    lifecycle = []
    for record in issue.lifecycle:
        if record.id in flips:
            if record.status != StepStatus.CURRENT:
                raise InvalidTransitionError(
                    record.status.value, StepStatus.COMPLETED.value,
                    f"record {record.id} is not CURRENT",
                )
            record = record.model_copy(update={"status": StepStatus.COMPLETED})
        lifecycle.append(record)
    lifecycle.extend(record.model_copy() for record in plan.new_records)

    update = dict(plan.field_changes)
    update["lifecycle"] = lifecycle
    return issue.model_copy(update=update, deep=True)
