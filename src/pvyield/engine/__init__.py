"""Engine package orchestrating the multi-year yield calculation."""

from .yield_calc import PassResult, YieldStage, calculate_request, calculate_yield

__all__ = ["calculate_yield", "calculate_request", "PassResult", "YieldStage"]
