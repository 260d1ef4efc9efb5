"""Issuer simulator.

Plays the part of an external issuer: takes an application that is waiting
for verification, issues a credential built from its fields and marks the
application Approved.
"""

import logging
from typing import Any, Dict, Mapping

from app.logging_config import wallet_context
from .anchoring import fake_block_number, fake_cid, fake_did, fake_signature, fake_tx_hash
from .exceptions import InvalidTransition
from .models import ApplicationStatus, Credential, utcnow
from .wallet import Wallet

log = logging.getLogger(__name__)

SIMULATED_CREDENTIAL_TYPE = "Simulated Verifiable Credential"


def fake_vc(issuer_did: str, subject_did: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
    """Build a W3C-shaped VC document with simulated evidence and proof."""
    issued = utcnow().isoformat()
    return {
        "@context": ["https://www.w3.org/2018/credentials/v1"],
        "type": ["VerifiableCredential"],
        "issuer": issuer_did,
        "issuanceDate": issued,
        "credentialSubject": {"id": subject_did, **fields},
        "evidence": {"cid": fake_cid(), "chainTx": fake_tx_hash(), "block": fake_block_number()},
        "proof": {
            "type": "EcdsaSecp256k1Signature2019",
            "created": issued,
            "verificationMethod": f"{issuer_did}#keys-1",
            "jws": fake_signature(),
        },
    }


class IssuerSimulator:
    """Issues credentials for a wallet's pending applications."""

    def __init__(self, wallet: Wallet):
        self.wallet = wallet

    def approve(self, application_id: str) -> Credential:
        """Issue a credential for an application in PendingVerification.

        Raises:
            NotFound: Unknown application id.
            InvalidTransition: Application is not PendingVerification.
        """
        application = self.wallet.ledger.get_application(application_id)
        if application.status != ApplicationStatus.PENDING_VERIFICATION:
            raise InvalidTransition(
                "application",
                application_id,
                application.status.value,
                ApplicationStatus.APPROVED.value,
            )

        issuer_did = fake_did()
        subject_did = application.subject_identifier or self.wallet.did or fake_did()
        vc = fake_vc(issuer_did, subject_did, application.fields)

        credential = self.wallet.add_credential({
            "title": application.application_type,
            "issuer": issuer_did,
            "type": SIMULATED_CREDENTIAL_TYPE,
            "status": "active",
            "description": f"Issued for {application.application_type} via issuer simulator.",
            "attributes": [
                {"label": label, "value": value, "disclosed": True}
                for label, value in application.fields.items()
            ],
            "raw_vc": vc,
            "proof_hash": vc["proof"]["jws"][2:26],
        })
        self.wallet.advance_application(application_id, ApplicationStatus.APPROVED)
        log.info(
            f"issued credential {credential.id} for application {application_id}",
            extra=wallet_context(self.wallet.did, application_id),
        )
        return credential
