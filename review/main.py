"""User review: deep-dive on one user's recent sign-ins.

Pulls every sign-in for the user over the review window, builds a profile,
and assesses it with Claude (or the deterministic reviewer with --mock).
Optionally revokes the user's sessions after interactive confirmation.

Runs single-shot for one user (how the monitor spawns it), or as a Kafka
consumer working through investigation requests published by the monitor.

Usage:
    python -m review.main --user adele.vance@contoso.com
    python -m review.main --user adele.vance@contoso.com --days 14 --revoke
    python -m review.main --consume --bootstrap-servers kafka-1:29092 --mock
"""

import argparse
import json
import os
import signal
import sys
import threading
from datetime import datetime, timedelta, timezone

import anthropic
from confluent_kafka import Consumer, KafkaError

from monitor.dispatch.kafka import DEFAULT_TOPIC
from monitor.filters import FilterCriteria, build_filter
from monitor.sources import SOURCES, SourceError
from monitor.sources.graph import GraphEventSource
from monitor.sources.simulated import SimulatedEventSource
from review.profile import build_profile
from review.prompt import build_review_prompt, build_system_prompt
from review.summary import assess

_TIER_TAGS = {"gold": "GOLD  ", "silver": "SILVER", "bronze": "BRONZE"}


def _read_api_key() -> str | None:
    """Docker secret first, then ANTHROPIC_API_KEY."""
    try:
        with open("/run/secrets/anthropic_api_key") as f:
            key = f.read().strip()
            if key:
                return key
    except FileNotFoundError:
        pass
    return os.environ.get("ANTHROPIC_API_KEY")


def assess_with_llm(profile: dict, model: str) -> dict:
    """Ask Claude for the assessment; deterministic reviewer on any failure."""
    api_key = _read_api_key()
    if not api_key:
        print("No API key found (checked /run/secrets/anthropic_api_key "
              "and ANTHROPIC_API_KEY env) - falling back to mock",
              file=sys.stderr)
        return assess(profile)

    client = anthropic.Anthropic(api_key=api_key)
    try:
        response = client.messages.create(
            model=model,
            max_tokens=512,
            system=build_system_prompt(),
            messages=[{"role": "user", "content": build_review_prompt(profile)}],
        )
        return json.loads(response.content[0].text)
    except (json.JSONDecodeError, anthropic.APIError, IndexError, AttributeError) as e:
        print(f"LLM review failed ({e}), falling back to mock", file=sys.stderr)
        return assess(profile)


def review_user(user: str, source, days: float, mock: bool, model: str,
                now: datetime | None = None) -> dict:
    """Fetch, profile and assess one user's sign-ins."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=days)
    criteria = FilterCriteria(user=user, lookback_minutes=days * 24 * 60)
    events = [e for e in source.fetch(build_filter(criteria, since), since)
              if e.user.casefold() == user.casefold()]

    profile = build_profile(user, events, days)
    assessment = assess(profile) if mock else assess_with_llm(profile, model)
    return {
        "user": user,
        "profile": profile,
        "assessment": assessment,
        "model": "mock" if mock else model,
        "reviewed_at": now.isoformat(),
    }


def print_report(report: dict, out=None) -> None:
    out = out or sys.stdout
    profile = report["profile"]
    result = report["assessment"]
    tier = result.get("tier", "?")

    print(f"REVIEW [{_TIER_TAGS.get(tier, tier)}]  user={report['user']}  "
          f"verdict={result.get('verdict', '?')}  "
          f"confidence={result.get('confidence', '?')}  "
          f"risk={result.get('risk_score', '?')}", file=out)
    print(f"  window={profile['window_days']}d  sign_ins={profile['sign_in_count']}  "
          f"failed={profile['failed_count']}  "
          f"countries={','.join(profile['countries']) or '-'}  "
          f"ips={profile['distinct_ips']}  "
          f"unregistered={profile['unregistered_device_count']}", file=out)
    print(f"  {result.get('reasoning', '')}", file=out)
    for action in result.get("recommended_actions", []):
        print(f"  - {action}", file=out)


def confirm_and_revoke(user: str, source, ask=input) -> bool:
    """Revoke the user's sessions if the operator confirms."""
    if not isinstance(source, GraphEventSource):
        print("Session revocation needs the graph source", file=sys.stderr)
        return False
    answer = ask(f"Revoke all sign-in sessions for {user}? [y/N] ")
    if answer.strip().lower() not in ("y", "yes"):
        print("Revocation skipped.")
        return False
    try:
        revoked = source.revoke_sessions(user)
    except SourceError as e:
        print(f"Revocation failed: {e}", file=sys.stderr)
        return False
    print(f"Sessions revoked for {user}" if revoked else
          f"Graph did not confirm revocation for {user}")
    return revoked


def consume(args, source, stop: threading.Event) -> None:
    """Work through investigation requests until stopped."""
    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.input_topic])

    reviewed = 0
    print(f"Review service started  mode={'mock' if args.mock else args.anthropic_model}  "
          f"input={args.input_topic}")
    try:
        while not stop.is_set():
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                print(f"Consumer error: {msg.error()}", file=sys.stderr)
                continue

            try:
                request = json.loads(msg.value().decode("utf-8"))
                user = request["user"]
            except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError):
                print("Skipping malformed investigation request", file=sys.stderr)
                continue

            try:
                report = review_user(user, source, args.days, args.mock,
                                     args.anthropic_model)
            except SourceError as e:
                print(f"Review failed  user={user}  error={e}", file=sys.stderr)
                continue
            print_report(report)
            reviewed += 1
    finally:
        consumer.close()
        print(f"Review service done. {reviewed} users reviewed.")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Single-user sign-in review")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--user", help="User principal name to review")
    target.add_argument("--consume", action="store_true",
                        help="Review users from the investigation topic")
    parser.add_argument("--days", type=float, default=7)
    parser.add_argument("--source", choices=sorted(SOURCES), default="graph")
    parser.add_argument("--seed", type=int)
    parser.add_argument(
        "--mock", action="store_true", default=False,
        help="Use the deterministic reviewer instead of the Claude API",
    )
    parser.add_argument(
        "--anthropic-model", default="claude-haiku-4-5-20251001",
        help="Claude model for the review (default: Haiku for speed/cost)",
    )
    parser.add_argument("--json", action="store_true", default=False,
                        help="Print the full report as JSON")
    parser.add_argument("--revoke", action="store_true", default=False,
                        help="Offer to revoke the user's sessions afterwards")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--input-topic", default=DEFAULT_TOPIC)
    parser.add_argument("--group-id", default="signin-review")
    args = parser.parse_args(argv)

    try:
        if args.source == "simulated":
            source = SimulatedEventSource(seed=args.seed)
        else:
            source = SOURCES[args.source]()
    except SourceError as e:
        parser.error(str(e))

    if args.consume:
        stop = threading.Event()
        signal.signal(signal.SIGINT, lambda sig, frame: stop.set())
        signal.signal(signal.SIGTERM, lambda sig, frame: stop.set())
        consume(args, source, stop)
        return 0

    try:
        report = review_user(args.user, source, args.days, args.mock,
                             args.anthropic_model)
    except SourceError as e:
        print(f"Review failed  user={args.user}  error={e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report, indent=2))
    else:
        print_report(report)

    if args.revoke:
        confirm_and_revoke(args.user, source)
    return 0


if __name__ == "__main__":
    sys.exit(main())
