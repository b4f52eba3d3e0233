"""Sign-in monitor: polls the sign-in log, alerts on new activity.

Every interval, queries the identity provider for sign-ins matching the
configured criteria over the lookback window, reports the ones not seen in
an earlier poll, raises one alert per cycle with new sign-ins, and starts a
per-user review for each user involved.  Runs until interrupted.

Usage:
    python -m monitor.main --source simulated
    python -m monitor.main --app "Azure Portal" --exclude-state Washington --ip-family exclude-ipv6
    python -m monitor.main --criteria monitor/profiles/portal_outside_home.yml --investigate kafka
"""

import argparse
import signal
import sys

from monitor import metrics
from monitor.config import load_profile, merge
from monitor.dispatch import AlertDispatcher
from monitor.dispatch.kafka import DEFAULT_TOPIC, KafkaLauncher, ensure_topic
from monitor.dispatch.process import ProcessLauncher
from monitor.engine import MonitorEngine
from monitor.loop import PollLoop
from monitor.render import render_cycle
from monitor.sources import SOURCES, SourceError
from monitor.sources.simulated import SimulatedEventSource


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sign-in log monitor")

    match = parser.add_argument_group("criteria")
    match.add_argument("--criteria", help="YAML criteria profile (flags override it)")
    match.add_argument("--app", dest="application")
    match.add_argument("--os", dest="operating_system")
    match.add_argument("--browser")
    match.add_argument("--city")
    match.add_argument("--state")
    match.add_argument("--country")
    match.add_argument("--exclude-state")
    match.add_argument("--ip", dest="ip_address")
    match.add_argument("--user")
    match.add_argument(
        "--ip-family",
        help="exclude-ipv6 | exclude-ipv4 | both (case-insensitive)",
    )
    match.add_argument(
        "--strict-ip-parsing", action="store_true", default=None,
        help="Classify IP family by parsing the address instead of looking for ':'",
    )
    match.add_argument("--interval", dest="interval_seconds", type=float,
                       help="Seconds between polls (default 60)")
    match.add_argument("--lookback", dest="lookback_minutes", type=float,
                       help="Minutes of history each poll queries (default 30)")

    parser.add_argument("--source", choices=sorted(SOURCES), default="graph")
    parser.add_argument("--seed", type=int, help="Seed for the simulated source")
    parser.add_argument("--investigate", choices=["process", "kafka", "none"],
                        default="process")
    parser.add_argument("--review-mock", action="store_true", default=False,
                        help="Spawned reviews use the deterministic assessment")
    parser.add_argument("--review-log-dir", default="reviews")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--investigation-topic", default=DEFAULT_TOPIC)
    parser.add_argument("--metrics-port", type=int,
                        help="Serve Prometheus metrics on this port")
    parser.add_argument("--history-rows", type=int, default=25,
                        help="History rows to print per cycle (0 = all)")
    parser.add_argument("--bell", action="store_true", default=False,
                        help="Ring the terminal bell on alerts")
    parser.add_argument("--max-cycles", type=int, help="Stop after this many polls")
    return parser


_CRITERIA_ARGS = ("application", "operating_system", "browser", "city", "state",
                  "country", "exclude_state", "ip_address", "user", "ip_family",
                  "strict_ip_parsing", "interval_seconds", "lookback_minutes")


def build_launcher(args):
    if args.investigate == "none":
        return None
    if args.investigate == "kafka":
        ensure_topic(args.bootstrap_servers, args.investigation_topic)
        return KafkaLauncher(args.bootstrap_servers, args.investigation_topic)
    extra = ["--source", args.source]
    if args.seed is not None:
        extra += ["--seed", str(args.seed)]
    if args.review_mock:
        extra.append("--mock")
    return ProcessLauncher(extra_args=extra, log_dir=args.review_log_dir)


def build_source(args):
    if args.source == "simulated":
        return SimulatedEventSource(seed=args.seed)
    return SOURCES[args.source]()


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        profile = load_profile(args.criteria) if args.criteria else {}
        criteria = merge(profile, {k: getattr(args, k) for k in _CRITERIA_ARGS})
        source = build_source(args)
    except (ValueError, FileNotFoundError, SourceError) as e:
        parser.error(str(e))

    if args.metrics_port:
        metrics.serve(args.metrics_port)
        print(f"Prometheus metrics server started on :{args.metrics_port}")

    launcher = build_launcher(args)
    dispatcher = AlertDispatcher(launcher, bell=args.bell)
    engine = MonitorEngine(criteria, source, dispatcher)
    rows = args.history_rows or None
    loop = PollLoop(
        engine,
        render=lambda result, snapshot: render_cycle(result, snapshot, rows),
        max_cycles=args.max_cycles,
    )

    def _shutdown(sig, frame):
        print("\nShutting down monitor...")
        loop.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    active = " ".join(f"{k}={v}" for k, v in criteria.active().items()) or "(none)"
    print(f"Sign-in monitor started  source={source.name}  "
          f"interval={criteria.interval_seconds:g}s  "
          f"lookback={criteria.lookback_minutes:g}m  "
          f"investigate={launcher.name if launcher else 'none'}")
    print(f"Criteria: {active}")

    try:
        loop.run()
    finally:
        if launcher is not None:
            launcher.close()
        print(f"Done. {loop.completed} polls ({loop.failed} failed), "
              f"{len(engine.history)} sign-ins recorded, "
              f"{dispatcher.launched} reviews started, "
              f"{dispatcher.failed} launches failed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
