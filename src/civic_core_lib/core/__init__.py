"""Issue lifecycle and access-control core.

Role policy, SLA calculator and lifecycle engine are pure and import-light.
The orchestrating ``IssueService`` lives in ``civic_core_lib.core.service``.
"""

from civic_core_lib.core.lifecycle import LifecycleEngine, TransitionPlan, check_status_transition
from civic_core_lib.core.policy import IssueScope, can_comment, can_mutate, scope_filter
from civic_core_lib.core.sla import calculate_sla, sla_allowance_hours

__all__ = [
    "LifecycleEngine",
    "TransitionPlan",
    "check_status_transition",
    "IssueScope",
    "can_comment",
    "can_mutate",
    "scope_filter",
    "calculate_sla",
    "sla_allowance_hours",
]
