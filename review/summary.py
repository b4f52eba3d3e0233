"""Deterministic user review: assessment without LLM calls.

Produces the same shape of output as the LLM reviewer from the profile
evidence alone.  Used with --mock, and as the fallback when the Anthropic
API is unavailable or returns something unusable.

Response tiers:
  - Gold:   Likely compromise, revoke sessions and reset credentials
  - Silver: Unusual activity, analyst should confirm with the user
  - Bronze: Consistent with normal use, log only
"""

# ---------------------------------------------------------------------------
# Reasoning templates
# ---------------------------------------------------------------------------
_REASONING = {
    "compromise": (
        "{n} sign-ins over {days} days from {countries} countries ({country_list}) "
        "with {failed} failures and {unregistered} sign-ins from unregistered "
        "devices.  Sign-ins from several countries combined with failed "
        "attempts and unmanaged devices fit a credential compromise pattern."
    ),
    "multi_country": (
        "Sign-ins from {countries} countries ({country_list}) within {days} days.  "
        "Could be travel or a VPN egress change; confirm with the user before "
        "acting."
    ),
    "failures": (
        "{failed} failed sign-ins out of {n} over {days} days ({top_reason}).  "
        "Could be password spraying against this account or a stale password "
        "on a device; review the source IPs."
    ),
    "normal": (
        "{n} sign-ins over {days} days from {country_list} with {failed} "
        "failures.  Activity is consistent with normal use."
    ),
    "empty": (
        "No sign-ins found for this user in the last {days} days.  Nothing to "
        "assess; the triggering activity may have aged out of the window."
    ),
}

_ACTIONS = {
    "gold": [
        "Revoke all sign-in sessions for the user",
        "Force a password reset and re-register MFA methods",
        "Review mailbox rules and OAuth grants created in the window",
    ],
    "silver": [
        "Contact the user to confirm recent travel or new devices",
        "Review source IPs against known VPN and office egress ranges",
    ],
    "bronze": ["Log and continue monitoring"],
}


def assess(profile: dict) -> dict:
    """Classify a user profile deterministically.

    Tier assignment:
      - Several countries + (3+ failures or unregistered devices)  → Gold
      - Several countries                                          → Silver
      - 5+ failures                                                → Silver
      - Anything else                                              → Bronze
    """
    n = profile.get("sign_in_count", 0)
    failed = profile.get("failed_count", 0)
    countries = profile.get("countries", [])
    unregistered = profile.get("unregistered_device_count", 0)

    if n == 0:
        verdict, confidence, tier, risk_score, key = (
            "needs_investigation", "low", "bronze", 1, "empty")
    elif len(countries) > 1 and (failed >= 3 or unregistered > 0):
        verdict, confidence, tier, risk_score, key = (
            "true_positive", "high", "gold", 9, "compromise")
    elif len(countries) > 1:
        verdict, confidence, tier, risk_score, key = (
            "needs_investigation", "medium", "silver", 6, "multi_country")
    elif failed >= 5:
        verdict, confidence, tier, risk_score, key = (
            "needs_investigation", "medium", "silver", 5, "failures")
    else:
        verdict, confidence, tier, risk_score, key = (
            "false_positive", "medium", "bronze", 2, "normal")

    return {
        "verdict": verdict,
        "confidence": confidence,
        "tier": tier,
        "risk_score": risk_score,
        "reasoning": _format_reasoning(key, profile),
        "recommended_actions": list(_ACTIONS[tier]),
    }


def _format_reasoning(key: str, profile: dict) -> str:
    reasons = profile.get("failure_reasons") or {}
    top_reason = next(iter(reasons), "no failure reason recorded")
    return _REASONING[key].format(
        n=profile.get("sign_in_count", 0),
        days=profile.get("window_days", "?"),
        failed=profile.get("failed_count", 0),
        unregistered=profile.get("unregistered_device_count", 0),
        countries=len(profile.get("countries", [])),
        country_list=", ".join(profile.get("countries", [])) or "unknown locations",
        top_reason=top_reason,
    )
