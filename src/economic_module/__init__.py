"""Economic module exposing social cost of carbon utilities."""

from .pulse import Pulse, PulseInjector
from .scc import (
    NAMED_DISCOUNT_RATES,
    DiscountSpec,
    SCCResult,
    compute_scc,
    compute_scc_from_twin,
    evaluate_scc,
    get_marginal_damages,
    validate_scc_request,
)
from .twin import TwinRun, TwinRunner

__all__ = [
    "Pulse",
    "PulseInjector",
    "TwinRun",
    "TwinRunner",
    "NAMED_DISCOUNT_RATES",
    "DiscountSpec",
    "SCCResult",
    "compute_scc",
    "compute_scc_from_twin",
    "evaluate_scc",
    "get_marginal_damages",
    "validate_scc_request",
]
