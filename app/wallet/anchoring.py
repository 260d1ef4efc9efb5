"""Chain anchoring and content storage collaborators.

The wallet core never inspects what these services return; the handles are
copied into opaque reference fields (storage_ref, chain_ref, block_height).

Two implementations share the same async interface:
- SimulatedAnchor: in-process, fabricates plausible handles.
- HttpAnchorClient: talks to an anchoring service over HTTP.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Optional

import httpx

from app.core.config import ANCHOR_SERVICE_URL, ANCHOR_TIMEOUT_SECONDS
from .exceptions import AnchorTimeout, AnchorUnavailable

log = logging.getLogger(__name__)

_CID_ALPHABET = "abcdefghijklmnopqrstuvwxyz234567"


# =============================================================================
# Simulated handle generators
# =============================================================================

def fake_hex(length: int = 40) -> str:
    return "".join(secrets.choice("abcdef0123456789") for _ in range(length))


def fake_cid() -> str:
    """CIDv1-looking content reference ("bafy" + 54 base32 chars)."""
    return "bafy" + "".join(secrets.choice(_CID_ALPHABET) for _ in range(54))


def fake_did() -> str:
    return f"did:ethr:matic:{fake_hex(40)}"


def fake_tx_hash() -> str:
    return f"0x{fake_hex(64)}"


def fake_block_number() -> int:
    return 1_000_000 + secrets.randbelow(9_000_000)


def fake_signature() -> str:
    return f"0x{fake_hex(130)}"


# =============================================================================
# Collaborator interface
# =============================================================================

@dataclass(frozen=True)
class AnchorReceipt:
    """Answer from the chain anchoring service.

    Attributes:
        transaction_ref: Transaction reference (opaque).
        confirmed: Whether the service reported the transaction confirmed.
        block_height: Block the transaction landed in.
    """
    transaction_ref: str
    confirmed: bool
    block_height: int


@dataclass(frozen=True)
class AnchorHandles:
    """Opaque references attached to a disclosure or application."""
    storage_ref: str
    chain_ref: str
    block_height: int

    @classmethod
    def simulated(cls) -> "AnchorHandles":
        return cls(
            storage_ref=fake_cid(),
            chain_ref=fake_tx_hash(),
            block_height=fake_block_number(),
        )


class SimulatedAnchor:
    """In-process stand-in for the chain anchoring and content storage services."""

    async def anchor(self, content_hash: str) -> AnchorReceipt:
        receipt = AnchorReceipt(
            transaction_ref=fake_tx_hash(),
            confirmed=True,
            block_height=fake_block_number(),
        )
        log.debug(f"simulated anchor {content_hash[:16]}... -> {receipt.transaction_ref[:12]}...")
        return receipt

    async def store(self, payload: bytes) -> str:
        return fake_cid()


class HttpAnchorClient:
    """Anchoring/storage collaborator reached over HTTP.

    Endpoints (relative to base_url):
        POST /anchor  {"hash": "..."} -> {"transactionRef", "confirmed", "blockHeight"}
        POST /store   raw bytes       -> {"ref": "..."}

    Timeouts raise AnchorTimeout; transport failures, HTTP errors and
    malformed answers raise AnchorUnavailable. No retries are attempted.
    """

    def __init__(self, base_url: str, timeout: float = ANCHOR_TIMEOUT_SECONDS):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def _post(self, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, **kwargs)
        except httpx.TimeoutException:
            log.warning(f"anchor call timed out: {url}")
            raise AnchorTimeout(f"anchoring service timed out: {path}")
        except httpx.RequestError as e:
            log.warning(f"anchor call failed: {url}: {e}")
            raise AnchorUnavailable(f"anchoring service unreachable: {e}")

        if response.status_code >= 400:
            raise AnchorUnavailable(
                f"anchoring service returned HTTP {response.status_code} for {path}"
            )
        try:
            return response.json()
        except ValueError:
            raise AnchorUnavailable(f"anchoring service returned invalid JSON for {path}")

    async def anchor(self, content_hash: str) -> AnchorReceipt:
        data = await self._post("/anchor", json={"hash": content_hash})
        try:
            return AnchorReceipt(
                transaction_ref=str(data["transactionRef"]),
                confirmed=bool(data.get("confirmed", False)),
                block_height=int(data["blockHeight"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise AnchorUnavailable(f"malformed anchor receipt: {e}")

    async def store(self, payload: bytes) -> str:
        data = await self._post(
            "/store",
            content=payload,
            headers={"content-type": "application/octet-stream"},
        )
        ref = data.get("ref") if isinstance(data, dict) else None
        if not ref:
            raise AnchorUnavailable("storage service returned no content reference")
        return str(ref)


_anchor: Optional[object] = None


def get_anchor():
    """Return the process-wide anchoring collaborator.

    Uses HttpAnchorClient when WALLET_ANCHOR_URL is set, SimulatedAnchor
    otherwise.
    """
    global _anchor
    if _anchor is None:
        if ANCHOR_SERVICE_URL:
            _anchor = HttpAnchorClient(ANCHOR_SERVICE_URL)
        else:
            _anchor = SimulatedAnchor()
    return _anchor


def reset_anchor() -> None:
    """Drop the cached collaborator (tests)."""
    global _anchor
    _anchor = None
