"""Approval line engine: whose turn it is, and how a single approver action applies.

Functions here work on the in-memory list of a report's ``ApprovalLine`` rows and
never touch the session or the report header; the lifecycle service decides what
a result means for the report status.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from app.exceptions import AlreadyResolved, InvalidTransition, NotYourTurn, ValidationError
from app.models.enums import LineStatus
from app.models.expense import ApprovalLine

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable, Sequence

    from app.schemas.expense import ApprovalLineInput


def ordered(lines: Iterable[ApprovalLine]) -> list[ApprovalLine]:
    """Return lines sorted by sequence position."""
    return sorted(lines, key=lambda line: line.step_order)


def current_pending_line(lines: Iterable[ApprovalLine]) -> ApprovalLine | None:
    """Return the lowest-sequence line still in WAIT.

    A REJECTED line earlier in the chain short-circuits it: the lines after it
    stay WAIT but are not actionable, so None is returned.
    """
    for line in ordered(lines):
        if line.status == LineStatus.REJECTED:
            return None
        if line.status == LineStatus.WAIT:
            return line
    return None


def is_fully_approved(lines: Sequence[ApprovalLine]) -> bool:
    return bool(lines) and all(line.status == LineStatus.APPROVED for line in lines)


def rejected_line(lines: Iterable[ApprovalLine]) -> ApprovalLine | None:
    """Return the line that short-circuited the chain, if any."""
    for line in ordered(lines):
        if line.status == LineStatus.REJECTED:
            return line
    return None


def last_approved_line(lines: Iterable[ApprovalLine]) -> ApprovalLine | None:
    """Return the most recently approved line (highest sequence among APPROVED)."""
    approved = [line for line in ordered(lines) if line.status == LineStatus.APPROVED]
    return approved[-1] if approved else None


def has_current_signature(lines: Iterable[ApprovalLine]) -> bool:
    """True if any line is currently signed off."""
    return any(line.status == LineStatus.APPROVED or line.signature_data for line in lines)


def was_ever_signed(lines: Iterable[ApprovalLine]) -> bool:
    """True if any line has carried a signature at some point, reversals included."""
    return any(line.ever_signed for line in lines)


def _take_turn(lines: Sequence[ApprovalLine], approver_id: uuid.UUID) -> ApprovalLine:
    pending = current_pending_line(lines)
    if pending is None:
        raise AlreadyResolved("No approval step is pending on this report; another approver already acted")
    if pending.approver_id != approver_id:
        raise NotYourTurn(f"It is not your turn: step {pending.step_order} is waiting for another approver")
    return pending


def apply_approve(
    lines: Sequence[ApprovalLine],
    approver_id: uuid.UUID,
    signature: str | None,
    *,
    now: datetime | None = None,
) -> list[ApprovalLine]:
    """Sign the current step on behalf of ``approver_id``."""
    line = _take_turn(lines, approver_id)
    line.status = LineStatus.APPROVED.value
    line.signature_data = signature
    line.rejection_reason = None
    line.approval_date = now or datetime.now(UTC)
    line.ever_signed = True
    return ordered(lines)


def apply_reject(
    lines: Sequence[ApprovalLine],
    approver_id: uuid.UUID,
    reason: str,
    *,
    now: datetime | None = None,
) -> list[ApprovalLine]:
    """Reject the current step. Later lines are left at WAIT."""
    line = _take_turn(lines, approver_id)
    line.status = LineStatus.REJECTED.value
    line.rejection_reason = reason
    line.approval_date = now or datetime.now(UTC)
    return ordered(lines)


def reverse_approval(lines: Sequence[ApprovalLine]) -> list[ApprovalLine]:
    """Reset the most recently approved line to WAIT."""
    line = last_approved_line(lines)
    if line is None:
        raise InvalidTransition("There is no approval to cancel on this report")
    line.status = LineStatus.WAIT.value
    line.signature_data = None
    line.approval_date = None
    return ordered(lines)


def reverse_rejection(lines: Sequence[ApprovalLine]) -> list[ApprovalLine]:
    """Reset the rejected line to WAIT, re-opening the chain at that position."""
    line = rejected_line(lines)
    if line is None:
        raise InvalidTransition("There is no rejection to cancel on this report")
    line.status = LineStatus.WAIT.value
    line.rejection_reason = None
    line.approval_date = None
    return ordered(lines)


def reset_all(lines: Sequence[ApprovalLine]) -> list[ApprovalLine]:
    """Put every line back to WAIT, dropping signatures and reasons."""
    for line in lines:
        line.status = LineStatus.WAIT.value
        line.signature_data = None
        line.rejection_reason = None
        line.approval_date = None
    return ordered(lines)


def build_lines(report_id: uuid.UUID, inputs: Sequence[ApprovalLineInput]) -> list[ApprovalLine]:
    """Create a fresh chain numbered 1..N in the given order."""
    if not inputs:
        raise ValidationError("At least one approver is required to submit a report")
    seen: set[uuid.UUID] = set()
    for item in inputs:
        if item.approver_id in seen:
            raise ValidationError("An approver may appear only once in the approval chain")
        if item.status is not None and item.status != LineStatus.WAIT:
            raise ValidationError("New approval lines must start in WAIT")
        seen.add(item.approver_id)
    return [
        ApprovalLine(
            report_id=report_id,
            step_order=position,
            approver_id=item.approver_id,
            approver_name=item.approver_name,
            approver_position=item.approver_position,
            status=LineStatus.WAIT.value,
        )
        for position, item in enumerate(inputs, start=1)
    ]


def append_line(
    lines: Sequence[ApprovalLine],
    report_id: uuid.UUID,
    item: ApprovalLineInput,
) -> ApprovalLine:
    """Create a WAIT line at the end of an existing chain."""
    if any(line.approver_id == item.approver_id for line in lines):
        raise ValidationError("This approver is already in the approval chain")
    next_step = max((line.step_order for line in lines), default=0) + 1
    return ApprovalLine(
        report_id=report_id,
        step_order=next_step,
        approver_id=item.approver_id,
        approver_name=item.approver_name,
        approver_position=item.approver_position,
        status=LineStatus.WAIT.value,
    )
