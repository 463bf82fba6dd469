"""Service-level errors translated into HTTP responses by the app."""

from typing import List


class FeatureNotAvailableError(Exception):
    """The learner's plan does not include a feature."""

    def __init__(self, feature: str, current_plan: str, required_plans: List[str]):
        self.feature = feature
        self.current_plan = current_plan
        self.required_plans = required_plans
        super().__init__(f"Feature '{feature}' is not available on the {current_plan} plan")


class QuotaExceededError(Exception):
    """A usage quota (daily questions, monthly lessons) is used up."""

    def __init__(self, quota: str, limit: int, used: int):
        self.quota = quota
        self.limit = limit
        self.used = used
        super().__init__(f"{quota} limit reached ({used}/{limit})")
