from enum import Enum


class PurchaseStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


ALLOWED_TRANSITIONS = {
    PurchaseStatus.PENDING: [PurchaseStatus.COMPLETED, PurchaseStatus.FAILED],
    # a late payment on a link we had given up on still counts
    PurchaseStatus.FAILED: [PurchaseStatus.COMPLETED],
    PurchaseStatus.COMPLETED: [],
}


def can_transition(current: str, target: str) -> bool:
    try:
        current, target = PurchaseStatus(current), PurchaseStatus(target)
    except ValueError:
        return False
    return target in ALLOWED_TRANSITIONS[current]
