# Copyright (c)
# SPDX-License-Identifier: MIT
"""
Benchmark Provider Transport Exceptions

Purpose:
    Conditions raised by the benchmark provider transport client. Gateways
    translate them into the per-endpoint fetch errors of
    :mod:`metricbench.domain.exceptions.metrics`.

Layer: domain/exceptions
"""
from __future__ import annotations

from .base import DomainError


class ProviderUnavailableError(DomainError):
    """Provider is unreachable, timed out, rate limited or returned 5xx."""

    code = "PROVIDER_UNAVAILABLE"


class ProviderNotFoundError(DomainError):
    """Provider has no data for the requested metric or peer group."""

    code = "PROVIDER_NOT_FOUND"


class ProviderPayloadError(DomainError):
    """Provider rejected the request (4xx) or returned an unexpected payload."""

    code = "PROVIDER_PAYLOAD_ERROR"


__all__ = ["ProviderNotFoundError", "ProviderPayloadError", "ProviderUnavailableError"]
