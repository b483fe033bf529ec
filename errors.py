"""
errors.py — Exceptions raised across the leaderboard service.
"""


class LeaderboardError(Exception):
    """Base class for all service errors."""


class UpstreamFetchError(LeaderboardError):
    """A Google Sheets read or write failed."""


class ValidationError(LeaderboardError):
    """A request was malformed."""


class InvalidPlanError(ValidationError):
    def __init__(self, plan):
        super().__init__(f"Invalid plan: {plan!r}")
        self.plan = plan


class NoAvailableVoucherError(LeaderboardError):
    def __init__(self, plan):
        super().__init__("No available vouchers for this plan")
        self.plan = plan


class OAuthExchangeError(LeaderboardError):
    def __init__(self, status, body):
        super().__init__(f"OpenRouter OAuth exchange failed ({status}): {body}")
        self.status = status
        self.body = body


class AllProvidersFailedError(LeaderboardError):
    def __init__(self, message="All AI providers failed"):
        super().__init__(message)
