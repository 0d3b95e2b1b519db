"""
agora.__main__ — Maintenance CLI for ``python -m agora``
=========================================================

Commands:

- ``init-db``    — create any missing tables (dev/test; production uses Alembic).
- ``sweep``      — escalate or close proposals whose voting window has elapsed.
- ``reconcile``  — compare stored balances with the transaction log.
- ``serve``      — run the HTTP API under Uvicorn.

Run with::

    python -m agora sweep
    python -m agora reconcile --fix
"""

from __future__ import annotations

import argparse
import logging
import sys

from dotenv import load_dotenv

from agora.config import load_config
from agora.database.engine import create_db_engine, init_db
from agora.services.proposal_service import sweep_expired_proposals
from agora.services.reconciliation_service import reconcile_balances

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("agora")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agora", description=__doc__.splitlines()[1])
    parser.add_argument("--config", default="config.yaml", help="path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="create missing tables")

    sweep = sub.add_parser("sweep", help="escalate or close expired proposals")
    sweep.add_argument("--batch-size", type=int, default=None)

    reconcile = sub.add_parser("reconcile", help="check balances against the ledger")
    reconcile.add_argument(
        "--fix", action="store_true", help="overwrite drifted balances with ledger sums"
    )

    sub.add_parser("serve", help="run the HTTP API")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and run one maintenance command."""
    args = _build_parser().parse_args(argv)

    # Environment variables (secrets, DATABASE_URL).
    load_dotenv()
    cfg = load_config(args.config)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("agora.api.main:app", host="0.0.0.0", port=cfg.api_port)
        return 0

    engine = create_db_engine()

    if args.command == "init-db":
        init_db(engine)
        return 0

    if args.command == "sweep":
        result = sweep_expired_proposals(
            engine, batch_size=args.batch_size or cfg.sweep_batch_size
        )
        logger.info(
            "Sweep finished — %d escalated, %d closed, %d skipped",
            len(result["escalated"]), len(result["closed"]), len(result["failed"]),
        )
        return 1 if result["failed"] else 0

    if args.command == "reconcile":
        result = reconcile_balances(engine, fix=args.fix)
        if result["corrected"] and not args.fix:
            logger.error(
                "%d balances drifted; rerun with --fix to repair", result["corrected"]
            )
            return 1
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
