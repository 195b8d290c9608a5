"""Auth code validation, usage metering and admin issuance."""

from gatekeeper.auth.cache import ValidationCache
from gatekeeper.auth.codes import generate_auth_code, mask_auth_code
from gatekeeper.auth.context import Allow, Decision, DenialReason, Deny
from gatekeeper.auth.gatekeeper import Gatekeeper
from gatekeeper.auth.usage import UsageAccumulator

__all__ = [
    "Allow",
    "Decision",
    "DenialReason",
    "Deny",
    "Gatekeeper",
    "UsageAccumulator",
    "ValidationCache",
    "generate_auth_code",
    "mask_auth_code",
]
