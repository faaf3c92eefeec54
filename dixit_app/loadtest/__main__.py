from __future__ import annotations

import argparse
import asyncio
import os
import sys

from dixit_app.loadtest.runner import run_load_test, write_report
from dixit_app.loadtest.scenarios import SCENARIOS, get_scenario
from dixit_app.observability.logging import configure_logging


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Dixit App load-test driver")
    parser.add_argument("--scenario", choices=sorted(SCENARIOS), default="enhanced", help="Traffic scenario to run")
    parser.add_argument("--url", default=os.environ.get("APP_URL", "http://localhost:3000"), help="Base URL of the service")
    parser.add_argument("--vus", type=int, default=None, help="Fixed number of virtual users (default: the scenario's own)")
    parser.add_argument("--duration", type=float, default=None, help="Fixed run time in seconds (default: the scenario's own)")
    parser.add_argument("--iterations", type=int, default=None, help="Stop each virtual user after this many passes")
    parser.add_argument("--seed", type=int, default=None, help="Seed for sampled steps")
    parser.add_argument("--out", default=None, help="Path to write the JSON report")
    args = parser.parse_args(argv)

    configure_logging()
    report = asyncio.run(
        run_load_test(
            get_scenario(args.scenario),
            args.url,
            vus=args.vus,
            duration_s=args.duration,
            iterations=args.iterations,
            seed=args.seed,
        )
    )
    if args.out:
        write_report(report, args.out)
    else:
        print(report.model_dump_json(indent=2))

    return 0 if report.summary.passed else 1


if __name__ == "__main__":
    sys.exit(main())
