"""
agora.services.reconciliation_service — Ledger Reconciliation
==============================================================

Periodic job that validates stored balances against the transaction log.

How it works:
    1. ``SUM(amount)`` from ``ledger_transactions`` grouped by
       (account_id, currency).
    2. Compare against ``accounts.acent_balance`` / ``dcent_balance``.
    3. Report every mismatch.  With ``fix=True`` overwrite the stored
       balance with the ledger sum; the log is authoritative.

Drift should never happen, since every balance change goes through
:func:`agora.services.ledger_service.record_transaction`.  A non-empty
report means something wrote to ``accounts`` directly.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import Engine, func, select

from agora.constants import to_amount, utcnow
from agora.database.engine import get_session
from agora.database.models import Account, Currency, LedgerTransaction

logger = logging.getLogger(__name__)


def reconcile_balances(engine: Engine, *, fix: bool = False) -> dict:
    """Compare every account's balances with its ledger sums.

    Returns ``{"checked": N, "corrected": M, "corrections": [...], "fixed": bool}``.
    ``corrected`` counts mismatches found whether or not they were fixed.
    """
    corrections: list[dict] = []

    with get_session(engine) as session:
        truth_rows = session.execute(
            select(
                LedgerTransaction.account_id,
                LedgerTransaction.currency,
                func.sum(LedgerTransaction.amount).label("actual"),
            )
            .group_by(LedgerTransaction.account_id, LedgerTransaction.currency)
        ).all()
        truth_map: dict[tuple[int, str], Decimal] = {
            (row.account_id, row.currency): to_amount(Decimal(str(row.actual or 0)))
            for row in truth_rows
        }

        query = select(Account).order_by(Account.id)
        if fix:
            query = query.with_for_update()
        accounts = session.scalars(query).all()

        checked = 0
        for account in accounts:
            for currency in Currency:
                checked += 1
                stored = to_amount(account.balance_for(currency))
                actual = truth_map.get((account.id, currency.value), to_amount(0))
                if stored == actual:
                    continue
                corrections.append({
                    "account_id": account.id,
                    "currency": currency.value,
                    "stored": str(stored),
                    "actual": str(actual),
                    "diff": str(actual - stored),
                })
                if fix:
                    account.set_balance(currency, actual)

    if corrections:
        logger.warning(
            "Balance reconciliation: %d/%d balances drifted%s: %s",
            len(corrections), checked, " (fixed)" if fix else "", corrections,
        )
    else:
        logger.info("Balance reconciliation: all %d balances match", checked)

    return {
        "checked": checked,
        "corrected": len(corrections),
        "corrections": corrections,
        "fixed": fix,
        "timestamp": utcnow().isoformat(),
    }
