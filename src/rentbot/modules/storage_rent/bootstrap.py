"""
Wires live collaborators from Settings into an Orchestrator.
"""

from rentbot.config.settings import Settings
from rentbot.modules.storage_rent.orchestrator import Orchestrator
from rentbot.modules.storage_rent.signer import RentClaimSigner
from rentbot.modules.storage_rent.submission_monitor import SubmissionMonitor
from rentbot.shared.infrastructure.ergo_node import ErgoNodeClient
from rentbot.shared.infrastructure.node_manager import NodeConnectionManager
from rentbot.shared.system.database.core import DatabaseCore
from rentbot.shared.system.database.repositories.box_repo import BoxRepository
from rentbot.shared.system.database.repositories.state_repo import BotStateRepository
from rentbot.shared.system.database.repositories.transaction_repo import TransactionRepository
from rentbot.shared.system.thread_manager import ThreadManager


def build_orchestrator(settings: Settings) -> Orchestrator:
    """Construct the node client, database, repositories and core components."""
    rent_config = settings.rent_config()

    manager = NodeConnectionManager(
        settings.node_urls,
        api_key=settings.ERGO_NODE_API_KEY,
        timeout=settings.NODE_TIMEOUT_SECONDS,
    )
    if len(settings.node_urls) > 1:
        manager.benchmark_providers()
    client = ErgoNodeClient(manager)

    db = DatabaseCore(settings.DATABASE_PATH)
    box_repo = BoxRepository(db)
    tx_repo = TransactionRepository(db)
    state_repo = BotStateRepository(db)
    for repo in (box_repo, tx_repo, state_repo):
        repo.init_table()

    monitor = SubmissionMonitor(
        client,
        RentClaimSigner(client),
        box_repo,
        tx_repo,
        rent_config,
        threads=ThreadManager(),
    )

    return Orchestrator(
        client=client,
        config=rent_config,
        change_address=settings.CHANGE_ADDRESS,
        monitor=monitor,
        box_repo=box_repo,
        tx_repo=tx_repo,
        state_repo=state_repo,
        db=db,
        network=settings.NETWORK_TYPE,
    )
