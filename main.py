import argparse
import asyncio
from datetime import date

from rewardcap.api.app import run as run_api
from rewardcap.api.routes.rewards import get_reward_service
from rewardcap.config import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RewardCap unified entrypoint")
    subparsers = parser.add_subparsers(dest="mode")

    subparsers.add_parser("api", help="Serve the HTTP API (default)")

    simulate = subparsers.add_parser("simulate", help="Simulate points for a purchase")
    simulate.add_argument("payment_method_id")
    simulate.add_argument("amount")
    simulate.add_argument("--currency", default="USD")
    simulate.add_argument("--mcc")
    simulate.add_argument("--merchant")
    simulate.add_argument("--online", action="store_true")
    simulate.add_argument("--contactless", action="store_true")
    simulate.add_argument("--date", type=date.fromisoformat, dest="as_of")
    return parser


def run_simulate(args: argparse.Namespace) -> None:
    configure_logging()
    result = asyncio.run(
        get_reward_service().simulate(
            payment_method_id=args.payment_method_id,
            amount=args.amount,
            currency=args.currency,
            mcc=args.mcc,
            merchant_name=args.merchant,
            is_online=args.online,
            is_contactless=args.contactless,
            as_of=args.as_of,
        )
    )
    print(result.model_dump_json(indent=2))


def main() -> None:
    args = build_parser().parse_args()

    if args.mode == "simulate":
        run_simulate(args)
        return

    run_api()


if __name__ == "__main__":
    main()
