"""Recovery quorum checker.

NOT secret sharing. Shares are independent random tokens; "recovery" means
the holder can present at least `threshold` of the current batch. No key is
reconstructed from them.

Normalization (trim + upper-case) is applied to both presented and stored
values. A stored share counts at most once, so typing the same share twice
does not inflate the match count.
"""

import logging
import uuid
from typing import Iterable, List, Optional, Sequence

from app.core.config import DEFAULT_SHARE_COUNT, RECOVERY_THRESHOLD, SHARE_VALUE_LENGTH
from .exceptions import ValidationError
from .models import QuorumResult, RecoveryShare, utcnow

log = logging.getLogger(__name__)


def normalize_share(value: str) -> str:
    return value.strip().upper()


class RecoveryQuorum:
    """Holds the current share batch and checks presented values against it."""

    def __init__(
        self,
        shares: Optional[Iterable[RecoveryShare]] = None,
        threshold: int = RECOVERY_THRESHOLD,
    ):
        self.threshold = threshold
        self._shares: List[RecoveryShare] = list(shares or ())

    def shares(self) -> List[RecoveryShare]:
        return list(self._shares)

    def generate_shares(self, count: Optional[int] = None) -> List[RecoveryShare]:
        """Replace the current batch with `count` fresh shares."""
        count = DEFAULT_SHARE_COUNT if count is None else count
        if count < self.threshold:
            raise ValidationError(
                f"share count {count} is below the recovery threshold {self.threshold}"
            )
        now = utcnow()
        batch = [
            RecoveryShare(
                id=str(uuid.uuid4()),
                label=f"Share {index + 1}",
                value=uuid.uuid4().hex[:SHARE_VALUE_LENGTH].upper(),
                created_at=now,
            )
            for index in range(count)
        ]
        self._shares = batch
        log.info(f"generated {count} recovery shares (threshold {self.threshold})")
        return list(batch)

    def clear_shares(self) -> None:
        self._shares = []

    def validate(self, presented: Sequence[str]) -> QuorumResult:
        """Count distinct stored shares matched by the presented values."""
        normalized = {normalize_share(v) for v in presented if v and v.strip()}
        matched = [s.id for s in self._shares if normalize_share(s.value) in normalized]
        matched_count = len(matched)
        result = QuorumResult(
            satisfied=matched_count >= self.threshold,
            matched_count=matched_count,
            missing=max(0, self.threshold - matched_count),
            matched_share_ids=tuple(matched),
        )
        if not result.satisfied:
            log.warning(f"recovery quorum not met: {matched_count}/{self.threshold}")
        return result
