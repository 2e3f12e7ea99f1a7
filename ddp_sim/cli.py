"""
DDP Simulator command line tool

Computes the allocation for a configuration file and replays a list of
exchange operations against the resulting ledger, printing balances and
pool figures along the way.
"""
import json
import logging
import argparse
from typing import Optional

from ddp_sim.config import Config
from ddp_sim.errors import SimulationError
from ddp_sim.exchange import Operation, OperationKind
from ddp_sim.monitoring import Monitor
from ddp_sim.session import Session

logger = logging.getLogger(__name__)

SAMPLE_OPERATIONS = [
    {"kind": "swap", "participant_id": 1, "token": "DDP", "amount": 1_000_000},
    {"kind": "swap", "participant_id": 2, "token": "USDC", "amount": 10},
    {"kind": "swap", "participant_id": 2, "token": "DDP", "amount": 500_000},
]


def configure_logging(config: Config):
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper(), logging.INFO),
        format=config.logging.format,
    )


def load_config(path: Optional[str]) -> Config:
    if path is None:
        return Config.default()
    return Config.from_file(path)


def print_breakdown(breakdown):
    percentages = breakdown.percentages()
    print("DDP allocations:")
    print(f"  - Treasury:     {breakdown.treasury_ddp:,.2f} ({percentages['treasury']:.2f}%)")
    print(f"  - AMM:          {breakdown.amm_ddp:,.2f} ({percentages['amm']:.2f}%)")
    print(f"  - Chairman:     {breakdown.chairman_ddp:,.2f} ({percentages['chairman']:.2f}%)")
    print(f"  - Board member: {breakdown.board_member_ddp:,.2f} each "
          f"({percentages['board_members']:.2f}% in total)")
    print(f"  - Platform:     {breakdown.platform_ddp:,.2f} ({percentages['platform']:.2f}%)")
    print("USDC allocations:")
    print(f"  - Contributions: {breakdown.total_contributions_usdc:,.2f}")
    print(f"  - Platform fee:  {breakdown.platform_fee_usdc:,.2f}")
    print(f"  - Treasury:      {breakdown.treasury_usdc:,.2f}")
    print(f"  - Pool:          {breakdown.pool_usdc:,.2f}")
    print(f"Initial DDP price: {breakdown.initial_ddp_price:.8f} USDC")


def print_ledger(ledger):
    summary = ledger.market_summary()
    price = summary['price']
    print(f"Pool: {summary['ddp_reserve']:,.2f} DDP / {summary['usdc_reserve']:,.2f} USDC "
          f"@ {price:.8f} USDC, k={summary['k']:,.2f}, LP supply={summary['total_lp_supply']:,.4f}")
    print(f"Market cap: {summary['market_cap']:,.2f} USDC over {summary['total_ddp']:,.2f} DDP")
    for p in ledger:
        print(f"  [{p.id:>4}] {p.name:<16} DDP {p.ddp_balance:>18,.2f}  "
              f"USDC {p.usdc_balance:>14,.2f}  LP {p.lp_tokens:>14,.4f}  "
              f"value {p.portfolio_value(price):>14,.2f}")


def print_result(result, dry_run: bool):
    prefix = "Preview" if dry_run else "Executed"
    if result.kind is OperationKind.SWAP:
        print(f"{prefix} swap by {result.participant_id}: {result.amount_in:,.6f} "
              f"{result.input_token.value} -> {result.amount_out:,.6f} "
              f"{result.input_token.other.value} (price impact {result.price_impact_pct:.4f}%)")
    elif result.kind is OperationKind.ADD_LIQUIDITY:
        print(f"{prefix} add liquidity by {result.participant_id}: {result.ddp_amount:,.6f} DDP + "
              f"{result.usdc_amount:,.6f} USDC -> {result.lp_tokens:,.6f} LP "
              f"({result.pool_share_pct:.4f}% of pool)")
    else:
        print(f"{prefix} remove liquidity by {result.participant_id}: {result.lp_tokens:,.6f} LP -> "
              f"{result.ddp_amount:,.6f} DDP + {result.usdc_amount:,.6f} USDC")


def generate_sample_config(output_path: str, ops_path: Optional[str] = None):
    """Writes the default configuration (and optionally sample operations)."""
    Config.default().to_file(output_path)
    print(f"Generated sample configuration at: {output_path}")
    if ops_path:
        with open(ops_path, 'w') as f:
            json.dump(SAMPLE_OPERATIONS, f, indent=2)
        print(f"Generated sample operations at: {ops_path}")


def allocate(config_path: Optional[str]) -> int:
    config = load_config(config_path)
    configure_logging(config)
    try:
        session = Session(config)
    except SimulationError as e:
        print(f"Error: {e}")
        return 1
    print_breakdown(session.breakdown)
    print()
    print_ledger(session.ledger)
    return 0


def run(config_path: Optional[str], ops_path: str, market: bool = False,
        dry_run: bool = False, snapshot_path: Optional[str] = None,
        show_metrics: bool = False) -> int:
    """Replays the operations in ``ops_path``; exit status is 1 if any operation failed."""
    config = load_config(config_path)
    configure_logging(config)

    monitor = None
    if show_metrics or config.monitoring.enabled:
        monitor = Monitor(config.monitoring.host, config.monitoring.port)
        if config.monitoring.enabled:
            monitor.start_server()

    try:
        try:
            session = Session.from_market(config, monitor) if market else Session(config, monitor=monitor)
        except SimulationError as e:
            print(f"Error: {e}")
            return 1

        with open(ops_path, 'r') as f:
            raw_ops = json.load(f)

        failures = 0
        for index, raw in enumerate(raw_ops):
            try:
                operation = Operation.from_dict(raw)
                result = session.simulate(operation) if dry_run else session.execute(operation)
            except SimulationError as e:
                failures += 1
                print(f"Operation {index} failed: {type(e).__name__}: {e}")
                continue
            print_result(result, dry_run)

        print()
        print_ledger(session.ledger)

        if snapshot_path:
            with open(snapshot_path, 'wb') as f:
                f.write(session.snapshot())
            print(f"Ledger snapshot written to: {snapshot_path}")

        if show_metrics:
            print()
            print(monitor.render())
    finally:
        if monitor:
            monitor.stop_server()
    return 1 if failures else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="DDP token economy and AMM simulator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    parser_sample = subparsers.add_parser("sample-config", help="Generate a sample configuration")
    parser_sample.add_argument("--output", type=str, default="ddp_sim.json", help="Output file path")
    parser_sample.add_argument("--ops", type=str, default=None, help="Also write sample operations here")

    parser_alloc = subparsers.add_parser("allocate", help="Show the allocation and initial ledger")
    parser_alloc.add_argument("--config", type=str, default=None, help="Path to config file")

    parser_run = subparsers.add_parser("run", help="Replay operations against the ledger")
    parser_run.add_argument("--config", type=str, default=None, help="Path to config file")
    parser_run.add_argument("--ops", type=str, required=True, help="JSON list of operations")
    parser_run.add_argument("--market", action="store_true", help="Use the market setup instead of the allocation")
    parser_run.add_argument("--dry-run", action="store_true", help="Preview each operation without applying it")
    parser_run.add_argument("--snapshot", type=str, default=None, help="Write a msgpack ledger snapshot here")
    parser_run.add_argument("--metrics", action="store_true", help="Print Prometheus metrics at the end")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == "sample-config":
        generate_sample_config(args.output, args.ops)
        return 0
    elif args.command == "allocate":
        return allocate(args.config)
    elif args.command == "run":
        return run(args.config, args.ops, args.market, args.dry_run, args.snapshot, args.metrics)
    return 2


if __name__ == '__main__':
    raise SystemExit(main())
