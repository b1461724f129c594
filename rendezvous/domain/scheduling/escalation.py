"""Re-proposal budget → escalation decision"""

from dataclasses import dataclass
from typing import Optional

from ...config import MAX_ADDITIONAL_PROPOSALS
from ..failures.schemas import FailureSummary

ACTION_REPROPOSE = "repropose"
ACTION_OPEN_SLOTS = "open_slots"


@dataclass(frozen=True)
class EscalationDecision:
    action: str
    max_reached: bool
    remaining_proposals: int
    # From the failure summary; drives messaging only
    escalation_level: int
    reason: str


def decide(
    additional_propose_count: int,
    max_additional: int = MAX_ADDITIONAL_PROPOSALS,
    failure_summary: Optional[FailureSummary] = None,
) -> EscalationDecision:
    """Escalate to an open-slots page once the counter reaches the cap

    The comparison is `>=`: with a cap of 2, the third request-alternate
    call escalates. Failures never change the action.
    """
    level = failure_summary.escalation_level if failure_summary else 0

    if additional_propose_count >= max_additional:
        return EscalationDecision(
            action=ACTION_OPEN_SLOTS,
            max_reached=True,
            remaining_proposals=0,
            escalation_level=level,
            reason="proposal_budget_exhausted",
        )

    return EscalationDecision(
        action=ACTION_REPROPOSE,
        max_reached=False,
        remaining_proposals=max_additional - additional_propose_count,
        escalation_level=level,
        reason="proposal_budget_available",
    )
