"""
Holder wallet configuration constants.

Constants are organized into:
- NORMATIVE: Fixed behaviour of the wallet core, not meant to be tuned
- CONFIGURABLE: Defaults that a deployment may override
- OPERATIONAL: Deployment-specific settings (env vars)
"""

import os

# =============================================================================
# NORMATIVE CONSTANTS
# =============================================================================

# Minimum number of distinct matching recovery shares needed to unlock.
# Presence-based quorum over opaque tokens, not secret sharing.
RECOVERY_THRESHOLD: int = 3

# Length of generated opaque proof hashes and recovery share values
PROOF_HASH_LENGTH: int = 24
SHARE_VALUE_LENGTH: int = 24

# Version tag written into every persisted wallet snapshot
SNAPSHOT_SCHEMA_VERSION: int = 1

# =============================================================================
# CONFIGURABLE DEFAULTS
# =============================================================================

# Number of shares produced by a single generate_shares() call
DEFAULT_SHARE_COUNT: int = int(os.getenv("WALLET_DEFAULT_SHARE_COUNT", "5"))

# Timeout for the HTTP anchoring / content storage collaborator
ANCHOR_TIMEOUT_SECONDS: float = float(os.getenv("WALLET_ANCHOR_TIMEOUT", "5"))

# Seed new wallets with the demo credential set
SEED_DEMO_CREDENTIALS: bool = os.getenv("WALLET_SEED_DEMO_CREDENTIALS", "true").lower() == "true"

# =============================================================================
# OPERATIONAL SETTINGS (deployment-specific, via environment variables)
# =============================================================================

# Base URL of the anchoring service. Empty means use the in-process simulator.
ANCHOR_SERVICE_URL: str = os.getenv("WALLET_ANCHOR_URL", "").rstrip("/")

# Directory holding one JSON snapshot per wallet identity.
# Empty disables persistence (wallets live only in memory).
SNAPSHOT_DIR: str = os.getenv("WALLET_SNAPSHOT_DIR", "")

# Controls whether /admin returns configuration data
ADMIN_ENDPOINT_ENABLED: bool = os.getenv("ADMIN_ENDPOINT_ENABLED", "true").lower() == "true"
