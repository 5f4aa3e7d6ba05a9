from dataclasses import replace
from datetime import datetime, timezone

from kupa.models import DirectionOverride, Transaction

DIRECTIONS = ("income", "expense")


def apply_direction_overrides(
    details: list[Transaction],
    overrides: dict[str, DirectionOverride],
) -> list[Transaction]:
    """Force user-chosen directions, keeping the detected one alongside."""
    out: list[Transaction] = []
    for d in details:
        ov = overrides.get(d.id)
        if ov is not None:
            d = replace(
                d,
                direction_detected=d.direction_detected or d.direction,
                direction=ov.direction,
                user_adjusted_direction=True,
                user_adjustment_note=ov.note,
            )
        out.append(d)
    return out


def set_direction_override(
    overrides: dict[str, DirectionOverride],
    transaction_id: str,
    direction: str,
    note: str | None = None,
) -> dict[str, DirectionOverride]:
    if direction not in DIRECTIONS:
        raise ValueError(f"Direction must be income or expense, got {direction!r}")
    updated_at = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return {**overrides, transaction_id: DirectionOverride(direction=direction, note=note, updated_at=updated_at)}


def clear_direction_override(overrides: dict[str, DirectionOverride], transaction_id: str) -> dict[str, DirectionOverride]:
    return {k: v for k, v in overrides.items() if k != transaction_id}
