"""Response analytics for choice fields."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable

from formflow.db.enums import CHOICE_FIELD_TYPES, DeviceType
from formflow.schemas.forms import FormField
from formflow.schemas.submissions import ChoiceFieldSummary, ChoiceOptionCount


def _option_count(option: str, answers: Iterable[Any]) -> int:
    count = 0
    for answer in answers:
        if isinstance(answer, list):
            count += 1 if option in answer else 0
        elif answer == option:
            count += 1
    return count


def summarize_choice_fields(
    fields: list[FormField], answer_sets: list[dict[str, Any]]
) -> list[ChoiceFieldSummary]:
    """Per-option counts for select, radio and checkbox fields.

    ``percentage`` is the top option's share of all selections for the field.
    Ties keep option order.
    """
    summaries: list[ChoiceFieldSummary] = []
    for field in fields:
        if field.type not in CHOICE_FIELD_TYPES:
            continue
        values = [answers.get(field.id) for answers in answer_sets]
        data = [
            ChoiceOptionCount(name=option, value=_option_count(option, values))
            for option in field.options or ()
        ]
        total = sum(item.value for item in data)
        top = max(data, key=lambda item: item.value, default=None)
        summaries.append(
            ChoiceFieldSummary(
                field_id=field.id,
                label=field.label,
                type=field.type.value,
                data=data,
                total=total,
                top_option=top.name if top else "N/A",
                percentage=round(top.value / total * 100) if top and total else 0,
            )
        )
    return summaries


def device_breakdown(device_types: Iterable[str]) -> dict[str, int]:
    counts = Counter(device_types)
    return {device.value: counts.get(device.value, 0) for device in DeviceType}
