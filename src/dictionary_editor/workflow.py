"""Editorial status state machine shared by lemmas and usage sentences."""

from __future__ import annotations

from dataclasses import dataclass

from dictionary_editor.exceptions import InvalidTransitionError, ValidationError
from dictionary_editor.models import EditorialStatus

# (current, target) pairs that are refused, with the reason given to the caller.
# Any pair not listed here is allowed, including same-state no-ops.
FORBIDDEN_TRANSITIONS: dict[tuple[EditorialStatus, EditorialStatus], str] = {
    (EditorialStatus.DRAFT, EditorialStatus.PUBLISHED):
        "must pass through REVIEW first",
    (EditorialStatus.ARCHIVED, EditorialStatus.PUBLISHED):
        "must unarchive to REVIEW first",
}

DEFAULT_UNARCHIVE_TARGET = EditorialStatus.REVIEW


@dataclass(frozen=True, slots=True)
class TransitionDecision:
    """Whether a status change is allowed, and why not if it isn't."""

    allowed: bool
    reason: str | None = None


def check_transition(
    current: EditorialStatus, target: EditorialStatus
) -> TransitionDecision:
    reason = FORBIDDEN_TRANSITIONS.get((current, target))
    if reason is None:
        return TransitionDecision(True)
    return TransitionDecision(False, reason)


def require_transition(
    current: EditorialStatus,
    target: EditorialStatus,
    *,
    label: str = "entity",
) -> None:
    """Raise :class:`InvalidTransitionError` if *current* -> *target* is refused."""
    decision = check_transition(current, target)
    if not decision.allowed:
        raise InvalidTransitionError(
            f"Cannot move {label} from {current.value} to {target.value}: "
            f"{decision.reason}"
        )


def unarchive_target(
    target: EditorialStatus | str | None = None,
) -> EditorialStatus:
    """Resolve the status an unarchive request moves to (default REVIEW)."""
    if target is None:
        return DEFAULT_UNARCHIVE_TARGET
    status = EditorialStatus.parse(target, "status")
    if status is EditorialStatus.ARCHIVED:
        raise ValidationError("Unarchive target cannot be ARCHIVED")
    return status
