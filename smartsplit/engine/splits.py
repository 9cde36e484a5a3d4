"""
Split calculator.

Turns (total, method, participants) into exactly what each participant
owes. Every method is computed in cents and the result always sums to the
total to the cent; where rounding leaves a residue, a single designated
participant absorbs it:

- equal: the first (total mod n) participants pay one extra cent
- exact, percentage, shares: the last participant absorbs the residue

Pure functions, no side effects.
"""

from decimal import Decimal
from typing import Any, Iterable, Optional, Union

import pydantic
import structlog

from smartsplit.config import get_settings
from smartsplit.engine.errors import ValidationError, invariant_violated
from smartsplit.engine.money import (
    Amount,
    allocate_proportionally,
    from_minor,
    split_evenly,
    to_decimal,
    to_minor,
)
from smartsplit.models.ledger import (
    Expense,
    ParticipantInput,
    SplitMethod,
    SplitResult,
    SplitShare,
)

log = structlog.get_logger(__name__)

ParticipantLike = Union[ParticipantInput, dict[str, Any], str]


def _coerce_method(method: Union[SplitMethod, str]) -> SplitMethod:
    try:
        return SplitMethod(method)
    except ValueError:
        raise ValidationError(f"Unknown split method: {method}", field="method")


def _coerce_participants(participants: Iterable[ParticipantLike]) -> list[ParticipantInput]:
    coerced = []
    for p in participants:
        if isinstance(p, ParticipantInput):
            coerced.append(p)
            continue
        if isinstance(p, str):
            p = {"member_id": p}
        try:
            coerced.append(ParticipantInput.model_validate(p))
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid participant {p!r}: {e.errors()[0]['msg']}", field="participants") from e

    if not coerced:
        raise ValidationError("At least one participant is required", field="participants")

    seen = set()
    for p in coerced:
        if p.member_id in seen:
            raise ValidationError(
                f"Participant {p.member_id} appears more than once",
                field="participants",
            )
        seen.add(p.member_id)

    return coerced


def _tolerance_minor() -> int:
    return to_minor(get_settings().ledger.split_tolerance)


def _split_equal(total_minor: int, participants: list[ParticipantInput]) -> list[int]:
    return split_evenly(total_minor, len(participants))


def _split_exact(total_minor: int, participants: list[ParticipantInput]) -> list[int]:
    amounts = [to_minor(p.amount) if p.amount is not None else 0 for p in participants]
    specified = sum(amounts)
    if abs(specified - total_minor) > _tolerance_minor():
        raise ValidationError(
            f"Split amounts ({from_minor(specified)}) don't match total ({from_minor(total_minor)})",
            field="participants",
        )
    # a residue inside the tolerance is absorbed so the split stays exact
    amounts[-1] += total_minor - specified
    if amounts[-1] < 0:
        raise ValidationError("Split amounts cannot be negative", field="participants")
    return amounts


def _split_percentage(total_minor: int, participants: list[ParticipantInput]) -> list[int]:
    percentages = [p.percentage if p.percentage is not None else Decimal(0) for p in participants]
    total_percentage = sum(percentages, Decimal(0))
    tolerance = get_settings().ledger.split_tolerance
    if abs(total_percentage - 100) > tolerance:
        raise ValidationError(
            f"Percentages must sum to 100 (got {total_percentage.normalize():f}%)",
            field="participants",
        )
    return allocate_proportionally(total_minor, percentages, denominator=100)


def _split_shares(total_minor: int, participants: list[ParticipantInput]) -> list[int]:
    # a participant without a share count weighs one share
    shares = [p.shares if p.shares is not None else Decimal(1) for p in participants]
    if sum(shares, Decimal(0)) == 0:
        raise ValidationError("Total shares cannot be zero", field="participants")
    return allocate_proportionally(total_minor, shares)


_STRATEGIES = {
    SplitMethod.EQUAL: _split_equal,
    SplitMethod.EXACT: _split_exact,
    SplitMethod.PERCENTAGE: _split_percentage,
    SplitMethod.SHARES: _split_shares,
}


def split(
    total_amount: Amount,
    method: Union[SplitMethod, str],
    participants: Iterable[ParticipantLike],
) -> SplitResult:
    """
    Divide total_amount among participants.

    Participants may be ParticipantInput models, dicts with the same keys,
    or plain member ids (for equal and shares splits).

    Raises:
        ValidationError: zero participants, duplicate participants, a
            negative total, exact amounts that do not add up, percentages
            that do not sum to 100, or zero total shares.
    """
    method = _coerce_method(method)
    people = _coerce_participants(participants)

    total_minor = to_minor(total_amount)
    if total_minor < 0:
        raise ValidationError("Amount cannot be negative", field="amount")

    amounts = _STRATEGIES[method](total_minor, people)

    if sum(amounts) != total_minor:
        raise invariant_violated(
            log,
            "exact_split",
            "Split amounts do not sum to the total",
            method=method.value,
            total=total_minor,
            allocated=sum(amounts),
        )

    result = SplitResult(
        total=from_minor(total_minor),
        method=method,
        splits=[
            SplitShare(
                member_id=p.member_id,
                amount=from_minor(amount),
                percentage=p.percentage if method == SplitMethod.PERCENTAGE else None,
                shares=(
                    (p.shares if p.shares is not None else Decimal(1))
                    if method == SplitMethod.SHARES
                    else None
                ),
            )
            for p, amount in zip(people, amounts)
        ],
    )

    log.debug(
        "split_calculated",
        method=method.value,
        total=str(result.total),
        participants=len(people),
    )
    return result


def build_expense(
    title: str,
    total_amount: Amount,
    paid_by: str,
    method: Union[SplitMethod, str],
    participants: Iterable[ParticipantLike],
    currency: Optional[str] = None,
    **fields: Any,
) -> Expense:
    """Split an amount and wrap the result in an Expense record."""
    result = split(total_amount, method, participants)
    if to_minor(result.total) == 0:
        raise ValidationError("Amount must be at least 0.01", field="amount")
    if currency is not None:
        fields["currency"] = currency
    return Expense(
        title=title,
        amount=to_decimal(result.total),
        paid_by=paid_by,
        splits=result.splits,
        split_method=result.method,
        **fields,
    )
