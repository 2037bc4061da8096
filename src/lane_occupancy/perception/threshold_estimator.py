"""
Threshold Estimator - brightness-adaptive binarization threshold.

A single fixed threshold under- or over-segments lanes as ambient lighting
changes, so the threshold follows the frame's average brightness through an
empirically fitted linear segment, clamped at both ends.
"""

from lane_occupancy.config.pipeline_config import ThresholdPolicy


class ThresholdEstimator:
    """Maps average frame brightness to a binarization threshold."""

    def __init__(self, policy: ThresholdPolicy = ThresholdPolicy()):
        self.policy = policy

    def estimate(self, average_brightness: float) -> float:
        policy = self.policy
        if average_brightness <= policy.lower_input:
            return float(policy.lower_output)
        if average_brightness >= policy.upper_input:
            return float(policy.upper_output)
        return policy.slope * average_brightness + policy.intercept

    __call__ = estimate
