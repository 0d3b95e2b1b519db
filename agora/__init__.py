"""
Agora — Dual-Currency Ledger & Competence-Gated Governance
============================================================
Rules engine for a civic proposal platform.  Members earn **Acents**
(competence currency) by passing proposal quizzes and voting, and
**Dcents** (participation currency) by delegating and reacting to
comments.  Every balance change flows through a single append-only
ledger.

Package layout::

    agora/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Economic constants, scope ladder, UTC helpers
    ├── errors.py          # Typed domain errors
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + transactional session helper
    │   └── models.py      # All ORM models and enums
    ├── engine/
    │   ├── quiz.py        # Quiz scoring and feedback
    │   ├── escalation.py  # Scope ladder and escalation planning
    │   └── revenue.py     # Comment revenue accrual and integration payout
    ├── services/
    │   ├── ledger_service.py          # Atomic transactions, rewards, replay
    │   ├── quiz_service.py            # Quiz creation and attempts
    │   ├── proposal_service.py        # Proposals, votes, escalation, sweep
    │   ├── delegation_service.py      # Vote-proxy graph
    │   ├── comment_service.py         # Comment economy
    │   └── reconciliation_service.py  # Balance vs. ledger drift check
    └── api/
        ├── main.py        # FastAPI app
        ├── auth.py        # Bearer token issuing
        └── routes/        # Thin REST wrappers over the services
"""

__version__ = "0.1.0"
