# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Validation Result

Purpose:
    Structured outcome of evaluating a value against a metric's rules:
    validity flag plus ordered hard errors and ordered soft warnings.

Layer: domain/entities
"""
from __future__ import annotations

from dataclasses import dataclass

from .base import BaseEntity


@dataclass(frozen=True, slots=True)
class ValidationResult(BaseEntity):
    """Outcome of a validation run.

    Args:
        is_valid: True when no rule failed.
        errors: Rule violation messages, in evaluation order.
        warnings: Non-blocking notices (e.g. near a range threshold).
    """

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def ok(cls, warnings: tuple[str, ...] = ()) -> ValidationResult:
        """Build a passing result."""
        return cls(is_valid=True, errors=(), warnings=warnings)
