"""Process-wide registry of wallets, one per holder identifier.

Each identifier maps to exactly one Wallet instance, which is the single
writer for that identity's state. When a snapshot directory is configured,
wallets are loaded from it on first access and saved after every mutation.
"""

import logging
from typing import Dict, List, Optional

from app.logging_config import wallet_context
from .snapshot import load_snapshot, save_snapshot
from .wallet import Wallet, demo_credentials

log = logging.getLogger(__name__)


class WalletRegistry:

    def __init__(self, snapshot_dir: str = "", seed: bool = True):
        self.snapshot_dir = snapshot_dir
        self.seed = seed
        self._wallets: Dict[str, Wallet] = {}

    def get(self, did: str) -> Wallet:
        """Return the wallet for `did`, creating or loading it on first use."""
        wallet = self._wallets.get(did)
        if wallet is not None:
            if wallet.did is None:
                wallet.set_did(did)
            return wallet

        state = None
        if self.snapshot_dir:
            state = load_snapshot(
                self.snapshot_dir, did, demo_credentials if self.seed else None
            )
            if state is not None:
                log.info("wallet loaded from snapshot", extra=wallet_context(did))

        wallet = Wallet(did=did, state=state, seed=self.seed, on_change=self._persist)
        self._wallets[did] = wallet
        return wallet

    def identities(self) -> List[str]:
        return list(self._wallets)

    def logout(self, did: str) -> None:
        """Log the identity out.

        The snapshot is saved under the original identifier, since the wallet
        itself forgets it. The next get(did) signs the same wallet back in.
        """
        wallet = self._wallets.get(did)
        if wallet is None:
            return
        wallet.logout()
        if self.snapshot_dir:
            save_snapshot(self.snapshot_dir, did, wallet.state())

    def _persist(self, wallet: Wallet) -> None:
        if self.snapshot_dir and wallet.did:
            save_snapshot(self.snapshot_dir, wallet.did, wallet.state())


_registry: Optional[WalletRegistry] = None


def get_wallet_registry() -> WalletRegistry:
    """Get or create the registry singleton.

    Configuration is read from app.core.config on first access.
    """
    global _registry
    if _registry is None:
        from app.core.config import SEED_DEMO_CREDENTIALS, SNAPSHOT_DIR

        _registry = WalletRegistry(snapshot_dir=SNAPSHOT_DIR, seed=SEED_DEMO_CREDENTIALS)
    return _registry


def reset_wallet_registry() -> None:
    """Reset the registry singleton (for testing)."""
    global _registry
    _registry = None
