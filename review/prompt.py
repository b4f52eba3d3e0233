"""Prompt construction for LLM-assisted user review.

The model plays the analyst who picks up a sign-in alert: it gets the
user's sign-in profile for the review window and returns a structured
assessment with a response tier.
"""

TIER_DESCRIPTIONS = {
    "gold": "Likely compromise: revoke sessions, reset credentials, escalate",
    "silver": "Unusual activity: confirm with the user, review source IPs",
    "bronze": "Consistent with normal use: log only",
}


def build_system_prompt() -> str:
    """Static system prompt establishing the reviewer persona."""
    return (
        "You are an identity security analyst reviewing Microsoft Entra ID "
        "sign-in activity for a single user after an automated monitor "
        "flagged new sign-ins.\n\n"
        "Classify the activity and assign a response tier:\n"
        "  - GOLD: Likely account compromise.  Sign-ins from implausible "
        "locations, unmanaged devices, bursts of failures followed by a "
        "success, or conditional access failures.\n"
        "  - SILVER: Unusual but explainable activity that a human should "
        "confirm with the user (travel, new device, VPN).\n"
        "  - BRONZE: Consistent with the user's normal pattern.\n\n"
        "Respond ONLY with a JSON object.  No markdown, no explanation "
        "outside the JSON."
    )


def _counts(mapping: dict) -> str:
    if not mapping:
        return "  (none)"
    return "\n".join(f"  {k}: {v}" for k, v in mapping.items())


def build_review_prompt(profile: dict) -> str:
    """Format a user profile into a structured review request."""
    recent = "\n".join(
        f"  {e['event_time']}  {e.get('application') or '-'}  "
        f"{e.get('city') or '-'}/{e.get('country') or '-'}  {e.get('ip_address') or '-'}  "
        f"registered={e.get('device_registered')}  "
        f"failure={e.get('failure_reason') or 'none'}"
        for e in profile.get("recent", [])
    ) or "  (none)"

    return (
        f"Review the following user's sign-in activity.\n\n"
        f"USER: {profile.get('user', 'unknown')}\n"
        f"WINDOW: {profile.get('window_days', '?')} days, "
        f"{profile.get('sign_in_count', 0)} sign-ins, "
        f"{profile.get('failed_count', 0)} failed\n"
        f"COUNTRIES: {', '.join(profile.get('countries', [])) or 'unknown'}\n"
        f"DISTINCT IPS: {profile.get('distinct_ips', 0)} "
        f"({profile.get('ipv6_count', 0)} IPv6 sign-ins)\n"
        f"UNREGISTERED DEVICE SIGN-INS: {profile.get('unregistered_device_count', 0)}\n"
        f"CONDITIONAL ACCESS FAILURES: {profile.get('conditional_access_failures', 0)}\n\n"
        f"LOCATIONS:\n{_counts(profile.get('locations', {}))}\n\n"
        f"APPLICATIONS:\n{_counts(profile.get('applications', {}))}\n\n"
        f"FAILURE REASONS:\n{_counts(profile.get('failure_reasons', {}))}\n\n"
        f"MOST RECENT SIGN-INS:\n{recent}\n\n"
        f"Respond with a JSON object containing exactly these fields:\n"
        f'{{\n'
        f'  "verdict": "true_positive" | "false_positive" | "needs_investigation",\n'
        f'  "confidence": "high" | "medium" | "low",\n'
        f'  "tier": "gold" | "silver" | "bronze",\n'
        f'  "risk_score": <integer 1-10>,\n'
        f'  "reasoning": "<2-3 sentences>",\n'
        f'  "recommended_actions": ["<action 1>", "<action 2>"]\n'
        f'}}'
    )
