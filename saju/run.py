"""
Command line interface. Prints JSON to stdout, logs to stderr.

Usage:
    python -m saju.run profile --birth 1986-05-26T09:00 [--longitude LON --latitude LAT] \
        [--ruleset standard|reference]
    python -m saju.run compare --a 1986-05-26T09:00 --b 1990-03-15T10:30
    python -m saju.run group 1986-05-26T09:00 1990-03-15T10:30 1975-11-02T18:00 [--top-k 5]

Naive date-times are read in SAJU_DEFAULT_TIMEZONE; missing coordinates
fall back to the reference location.
"""

import argparse
import json
import sys

from saju.chart import BirthData, compute_profile
from saju.compatibility import analyze_group, compare
from saju.errors import safe_main
from saju.logging_utils import get_logger, setup_logging
from saju.rules import RULE_SETS, get_rule_set

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="saju-run", description="Four Pillars profiles and compatibility.")
    parser.add_argument("--ruleset", choices=sorted(RULE_SETS), default=None,
                        help="special-case rule set (default: SAJU_RULESET)")
    parser.add_argument("--log-level", dest="log_level", default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("profile", help="compute one profile")
    p.add_argument("--birth", required=True, help="ISO date-time of birth")
    p.add_argument("--longitude", type=float, default=None)
    p.add_argument("--latitude", type=float, default=None)

    c = sub.add_parser("compare", help="compatibility of two births")
    c.add_argument("--a", required=True, dest="birth_a")
    c.add_argument("--b", required=True, dest="birth_b")

    g = sub.add_parser("group", help="balance of a group of births")
    g.add_argument("births", nargs="+")
    g.add_argument("--top-k", dest="top_k", type=int, default=5)

    return parser


def _profile(birth: str, rules, longitude=None, latitude=None):
    return compute_profile(BirthData.from_input(birth, longitude, latitude), rules=rules)


def run(args: argparse.Namespace) -> dict:
    rules = get_rule_set(args.ruleset) if args.ruleset else None

    if args.command == "profile":
        return _profile(args.birth, rules, args.longitude, args.latitude).to_dict()

    if args.command == "compare":
        a = _profile(args.birth_a, rules)
        b = _profile(args.birth_b, rules)
        return compare(a, b).to_dict()

    profiles = [_profile(birth, rules) for birth in args.births]
    return analyze_group(profiles, top_k=args.top_k).to_dict()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    def _main():
        # Settings load here, so a bad SAJU_* value exits through safe_main.
        setup_logging(level=args.log_level, component="saju")
        logger.debug("Running %s", args.command)
        result = run(args)
        print(json.dumps(result, indent=2, ensure_ascii=False))

    return safe_main(_main, component="saju.run")


if __name__ == "__main__":
    sys.exit(main())
