# -*- coding: utf-8 -*-
"""Intake — patient data collector (merge, toggle, step-boundary validation)."""

from __future__ import annotations

from typing import List

from ..errors import IntakeValidationError
from .models import MultiSelectField, PatientIntake, PatientIntakeUpdate

AGE_RANGE = (1, 120)
HEIGHT_RANGE = (50.0, 250.0)
WEIGHT_RANGE = (20.0, 300.0)


def _clean_list(values: List[str]) -> List[str]:
    out: List[str] = []
    for v in values:
        s = (v or "").strip()
        if s and s not in out:
            out.append(s)
    return out


class PatientDataCollector:
    def __init__(self) -> None:
        self.data = PatientIntake()

    def merge(self, update: PatientIntakeUpdate) -> PatientIntake:
        changes = update.model_dump(exclude_unset=True)
        for key in ("complaints", "risk_factors"):
            if changes.get(key) is not None:
                changes[key] = _clean_list(changes[key])
        # Explicit nulls clear scalar fields; lists and texts fall back to empty.
        for key in ("complaints", "risk_factors"):
            if key in changes and changes[key] is None:
                changes[key] = []
        for key in ("complaints_details", "medical_history"):
            if key in changes and changes[key] is None:
                changes[key] = ""
        self.data = self.data.model_copy(update=changes)
        return self.data

    def toggle(self, field: MultiSelectField, value: str) -> List[str]:
        value = value.strip()
        current = list(getattr(self.data, field.value))
        if value in current:
            current.remove(value)
        else:
            current.append(value)
        self.data = self.data.model_copy(update={field.value: current})
        return current

    def reset(self) -> None:
        self.data = PatientIntake()


def validate_demographics(data: PatientIntake) -> None:
    """Checks the fields required to leave the demographics step."""
    missing = [name for name in ("age", "gender", "height", "weight") if getattr(data, name) in (None, "")]
    if missing:
        raise IntakeValidationError(
            "Заполните все поля: пожалуйста, заполните все обязательные поля",
            fields=missing,
        )

    bad: List[str] = []
    if not (AGE_RANGE[0] <= int(data.age) <= AGE_RANGE[1]):
        bad.append("age")
    if not (HEIGHT_RANGE[0] <= float(data.height) <= HEIGHT_RANGE[1]):
        bad.append("height")
    if not (WEIGHT_RANGE[0] <= float(data.weight) <= WEIGHT_RANGE[1]):
        bad.append("weight")
    if bad:
        raise IntakeValidationError(
            "Значения вне допустимого диапазона: " + ", ".join(bad),
            fields=bad,
        )
