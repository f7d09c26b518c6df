from __future__ import annotations

import argparse
import json
import sys

from propweb.app.runner import run


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="propweb")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Replay the configured visitor journey")
    p_run.add_argument("--config", default="config/site.yaml")

    args = parser.parse_args(argv)

    if args.cmd == "run":
        result = run(args.config)
        print(json.dumps(result.as_dict(), ensure_ascii=False, default=str))
        return 0

    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
