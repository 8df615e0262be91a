"""
Integration Test Configuration
==============================
Fixtures for component wiring tests against a real SQLite file and the
in-memory ledger.
"""

import pytest


@pytest.fixture
def db(tmp_path):
    """Fresh DatabaseCore under tmp_path."""
    from rentbot.shared.system.database.core import DatabaseCore

    return DatabaseCore(str(tmp_path / "data" / "rent-bot.db"))


@pytest.fixture
def repos(db):
    """(box_repo, tx_repo, state_repo) with tables created."""
    from rentbot.shared.system.database.repositories.box_repo import BoxRepository
    from rentbot.shared.system.database.repositories.state_repo import BotStateRepository
    from rentbot.shared.system.database.repositories.transaction_repo import TransactionRepository

    box_repo = BoxRepository(db)
    tx_repo = TransactionRepository(db)
    state_repo = BotStateRepository(db)
    for repo in (box_repo, tx_repo, state_repo):
        repo.init_table()
    return box_repo, tx_repo, state_repo
