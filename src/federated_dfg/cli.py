"""
Discover a directly-follows graph from two organizations' event logs.

Usage:
  federated-dfg log_a.xes.gz log_b.xes.gz result.json --secure --psi
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from federated_dfg.config import load_protocol_config
from federated_dfg.errors import ProtocolAborted
from federated_dfg.protocol import ProtocolRun, SecureDFGProtocol
from federated_dfg.utils import RetryError, configure_logging, get_logger, retry

logger = get_logger("cli")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("log_a", type=Path, help="Event log (.xes or .xes.gz) of organization A.")
    parser.add_argument("log_b", type=Path, help="Event log (.xes or .xes.gz) of organization B.")
    parser.add_argument("output", type=Path, help="Path to write the DFG as JSON.")
    parser.add_argument(
        "--secure",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use the BFV backend (default: config value, else the trivial backend).",
    )
    parser.add_argument(
        "--psi",
        dest="use_psi",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reconcile pairs with DH-PSI; --no-psi exchanges pair sets in the clear.",
    )
    parser.add_argument("--config", type=Path, help="Protocol config JSON (overrides FEDERATED_DFG_CONFIG).")
    parser.add_argument("--png", type=Path, help="Also render the DFG to this image path (needs graphviz).")
    parser.add_argument(
        "--no-start-end",
        action="store_true",
        help="Do not frame traces with artificial start/end activities.",
    )
    parser.add_argument("--retries", type=int, default=0, help="Restart an aborted run this many times.")
    parser.add_argument("--log-level", help="Logging level (default: LOG_LEVEL or INFO).")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs)

    # pm4py is slow to import; only load it once arguments are valid.
    from federated_dfg.dfg.export import render_dfg_image, write_dfg_json
    from federated_dfg.dfg.extraction import frequency_table_from_xes

    config, config_path = load_protocol_config(args.config)
    if config_path:
        logger.info("Loaded protocol config from %s", config_path)
    add_start_end = not args.no_start_end
    config = config.with_overrides(secure=args.secure, use_psi=args.use_psi, split_markers=add_start_end)

    table_a = frequency_table_from_xes(args.log_a, add_start_end=add_start_end)
    table_b = frequency_table_from_xes(args.log_b, add_start_end=add_start_end)

    protocol = SecureDFGProtocol(config)
    try:
        run: ProtocolRun = retry(
            lambda: protocol.run(table_a, table_b),
            retries=max(0, args.retries),
            backoff=0.5,
            exceptions=(ProtocolAborted,),
        )
    except RetryError as exc:
        cause = exc.__cause__
        phase = cause.phase if isinstance(cause, ProtocolAborted) else "unknown"
        logger.error("Federated discovery failed in phase '%s': %s", phase, cause)
        return 1

    for phase, seconds in run.timings.items():
        logger.info("Phase %-16s %8.1f ms", phase, seconds * 1000)
    for name, value in run.operations.items():
        logger.info("Operation count %-16s %d", name, value)

    write_dfg_json(run.dfg, args.output)
    if args.png:
        render_dfg_image(run.dfg, args.png)
    return 0


if __name__ == "__main__":
    sys.exit(main())
