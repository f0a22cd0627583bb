from .identity_broker import ClaimDiff, GoogleIdentityBroker, diff_claims, google_claims

__all__ = ["ClaimDiff", "GoogleIdentityBroker", "diff_claims", "google_claims"]
