import logging
import os
import time

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.logging_config import configure_logging
from app.wallet.anchoring import get_anchor
from app.wallet.api_models import (
    ERROR_HTTP_STATUS,
    AddApplicationRequest,
    AddCredentialRequest,
    AddCredentialRequestRequest,
    AddDocumentRequest,
    AdvanceApplicationRequest,
    ApproveRequestRequest,
    CredentialStatusRequest,
    DisclosedFlagRequest,
    DocumentStatusRequest,
    ErrorResponse,
    GenerateSharesRequest,
    QuorumResponse,
    ValidateSharesRequest,
)
from app.wallet.exceptions import WalletError
from app.wallet.issuer import IssuerSimulator
from app.wallet.registry import get_wallet_registry
from app.wallet.snapshot import (
    application_to_dict,
    credential_to_dict,
    document_to_dict,
    request_to_dict,
    share_to_dict,
)

configure_logging()
log = logging.getLogger("wallet")

app = FastAPI(title="Holder Wallet", version="0.1.0")


@app.exception_handler(WalletError)
async def wallet_error_handler(request: Request, exc: WalletError):
    log.warning(f"rejected {request.method} {request.url.path}: {exc.code} {exc.message}",
                extra={"route": request.url.path})
    return JSONResponse(
        status_code=ERROR_HTTP_STATUS.get(exc.code, 400),
        content=ErrorResponse(error=exc.to_detail()).model_dump(),
    )


@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    route = request.url.path
    remote = request.client.host if request.client else "-"
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
             extra={"request_id": "-", "route": route, "remote_addr": remote})
    return resp


@app.get("/healthz")
def healthz():
    return {"ok": True}


@app.get("/version")
def version():
    # GIT_SHA is injected at deploy time
    return {"git_sha": os.getenv("GIT_SHA", "unknown")}


@app.get("/admin")
def admin():
    """Return configuration for operator visibility.

    Gated by ADMIN_ENDPOINT_ENABLED.
    """
    from app.core.config import (
        ADMIN_ENDPOINT_ENABLED,
        ANCHOR_SERVICE_URL,
        ANCHOR_TIMEOUT_SECONDS,
        DEFAULT_SHARE_COUNT,
        PROOF_HASH_LENGTH,
        RECOVERY_THRESHOLD,
        SEED_DEMO_CREDENTIALS,
        SNAPSHOT_DIR,
        SNAPSHOT_SCHEMA_VERSION,
    )

    if not ADMIN_ENDPOINT_ENABLED:
        return JSONResponse(
            status_code=404,
            content={"detail": "Admin endpoint disabled"}
        )

    return {
        "normative": {
            "recovery_threshold": RECOVERY_THRESHOLD,
            "proof_hash_length": PROOF_HASH_LENGTH,
            "snapshot_schema_version": SNAPSHOT_SCHEMA_VERSION,
        },
        "configurable": {
            "default_share_count": DEFAULT_SHARE_COUNT,
            "anchor_timeout_seconds": ANCHOR_TIMEOUT_SECONDS,
            "seed_demo_credentials": SEED_DEMO_CREDENTIALS,
        },
        "operational": {
            "anchor_service_url": ANCHOR_SERVICE_URL or None,
            "anchor_mode": type(get_anchor()).__name__,
            "snapshot_dir": SNAPSHOT_DIR or None,
            "admin_endpoint_enabled": ADMIN_ENDPOINT_ENABLED,
        },
        "environment": {
            "log_level": logging.getLogger().getEffectiveLevel(),
            "log_level_name": logging.getLevelName(logging.getLogger().getEffectiveLevel()),
        },
        "wallets": {
            "loaded": len(get_wallet_registry().identities()),
        },
    }


# =============================================================================
# Credentials
# =============================================================================

@app.get("/wallets/{did}/credentials")
def list_credentials(did: str):
    wallet = get_wallet_registry().get(did)
    return [credential_to_dict(c) for c in wallet.credentials.list()]


@app.post("/wallets/{did}/credentials", status_code=201)
def add_credential(did: str, req: AddCredentialRequest):
    wallet = get_wallet_registry().get(did)
    data = req.model_dump(exclude_none=True)
    return credential_to_dict(wallet.add_credential(data))


@app.delete("/wallets/{did}/credentials/{credential_id}", status_code=204)
def remove_credential(did: str, credential_id: str):
    get_wallet_registry().get(did).remove_credential(credential_id)


@app.post("/wallets/{did}/credentials/{credential_id}/status")
def transition_credential(did: str, credential_id: str, req: CredentialStatusRequest):
    wallet = get_wallet_registry().get(did)
    return credential_to_dict(wallet.transition_credential(credential_id, req.status))


@app.post("/wallets/{did}/credentials/{credential_id}/attributes/{label}/disclosed")
def set_attribute_disclosed(did: str, credential_id: str, label: str, req: DisclosedFlagRequest):
    wallet = get_wallet_registry().get(did)
    return credential_to_dict(wallet.set_attribute_disclosed(credential_id, label, req.disclosed))


# =============================================================================
# Applications
# =============================================================================

@app.get("/wallets/{did}/applications")
def list_applications(did: str):
    wallet = get_wallet_registry().get(did)
    return [application_to_dict(a) for a in wallet.ledger.applications()]


@app.post("/wallets/{did}/applications", status_code=201)
async def add_application(did: str, req: AddApplicationRequest):
    """Submit an application.

    With `anchor: true` the fields are stored and anchored and the
    application moves on to PendingVerification.
    """
    wallet = get_wallet_registry().get(did)
    data = req.model_dump(exclude={"anchor"}, exclude_none=True)
    if req.anchor:
        record = await wallet.submit_application_async(data)
    else:
        record = wallet.add_application(data)
    return application_to_dict(record)


@app.post("/wallets/{did}/applications/{application_id}/advance")
def advance_application(did: str, application_id: str, req: AdvanceApplicationRequest):
    wallet = get_wallet_registry().get(did)
    return application_to_dict(wallet.advance_application(application_id, req.next_status))


@app.post("/wallets/{did}/applications/{application_id}/issue", status_code=201)
def issue_for_application(did: str, application_id: str):
    wallet = get_wallet_registry().get(did)
    return credential_to_dict(IssuerSimulator(wallet).approve(application_id))


# =============================================================================
# Disclosure requests
# =============================================================================

@app.get("/wallets/{did}/requests")
def list_requests(did: str, status: str = ""):
    wallet = get_wallet_registry().get(did)
    requests = wallet.ledger.requests()
    if status:
        requests = [r for r in requests if r.status.value == status]
    return [request_to_dict(r) for r in requests]


@app.post("/wallets/{did}/requests", status_code=201)
def add_request(did: str, req: AddCredentialRequestRequest):
    wallet = get_wallet_registry().get(did)
    return request_to_dict(wallet.add_request(req.model_dump(exclude_none=True)))


@app.get("/wallets/{did}/requests/{request_id}/eligible")
def eligible_credentials(did: str, request_id: str):
    wallet = get_wallet_registry().get(did)
    return [credential_to_dict(c) for c in wallet.eligible_credentials(request_id)]


@app.post("/wallets/{did}/requests/{request_id}/approve")
async def approve_request(did: str, request_id: str, req: ApproveRequestRequest):
    wallet = get_wallet_registry().get(did)
    record = await wallet.approve_request_async(request_id, req.credential_id, req.reveal)
    return request_to_dict(record)


@app.post("/wallets/{did}/requests/{request_id}/deny")
def deny_request(did: str, request_id: str):
    wallet = get_wallet_registry().get(did)
    return request_to_dict(wallet.deny_request(request_id))


# =============================================================================
# Recovery
# =============================================================================

@app.post("/wallets/{did}/recovery/shares", status_code=201)
def generate_shares(did: str, req: GenerateSharesRequest):
    wallet = get_wallet_registry().get(did)
    return [share_to_dict(s) for s in wallet.generate_shares(req.count)]


@app.delete("/wallets/{did}/recovery/shares", status_code=204)
def clear_shares(did: str):
    get_wallet_registry().get(did).clear_shares()


@app.post("/wallets/{did}/recovery/validate")
def validate_shares(did: str, req: ValidateSharesRequest):
    wallet = get_wallet_registry().get(did)
    result = wallet.validate_shares(req.shares)
    return QuorumResponse(
        satisfied=result.satisfied,
        matched_count=result.matched_count,
        missing=result.missing,
        threshold=wallet.recovery.threshold,
    ).model_dump()


# =============================================================================
# Documents
# =============================================================================

@app.get("/wallets/{did}/documents")
def list_documents(did: str):
    wallet = get_wallet_registry().get(did)
    return [document_to_dict(d) for d in wallet.documents.list()]


@app.post("/wallets/{did}/documents", status_code=201)
def add_document(did: str, req: AddDocumentRequest):
    wallet = get_wallet_registry().get(did)
    return document_to_dict(wallet.add_document(req.model_dump(exclude_none=True)))


@app.post("/wallets/{did}/documents/{document_id}/status")
def update_document_status(did: str, document_id: str, req: DocumentStatusRequest):
    wallet = get_wallet_registry().get(did)
    record = wallet.update_document_status(
        document_id, req.status, content_ref=req.content_ref, notes=req.notes
    )
    return document_to_dict(record)


# =============================================================================
# Session
# =============================================================================

@app.post("/wallets/{did}/logout")
def logout(did: str):
    get_wallet_registry().logout(did)
    return {"ok": True}
