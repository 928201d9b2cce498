"""Majority rule over the three persona verdicts."""

from collections.abc import Iterable

from magi.models import ConsensusOutcome, Deliberation, Verdict


def compute_consensus(verdicts: Iterable[Verdict]) -> ConsensusOutcome:
    """REFUSE votes abstain. CONDITIONAL counts toward approval, never denial."""
    valid = [v for v in verdicts if v is not Verdict.REFUSE]
    approves = valid.count(Verdict.APPROVE)
    denies = valid.count(Verdict.DENY)
    conditionals = valid.count(Verdict.CONDITIONAL)
    if approves >= 2:
        return ConsensusOutcome.APPROVED
    if denies >= 2:
        return ConsensusOutcome.DENIED
    if approves + conditionals >= 2:
        return ConsensusOutcome.CONDITIONAL
    return ConsensusOutcome.NO_CONSENSUS


def deliberation_outcome(deliberation: Deliberation) -> ConsensusOutcome:
    return compute_consensus(r.verdict for r in deliberation.responses)
