# Copyright (c) 2025 The Salvium Guardian developers
# Distributed under the MIT software license

"""
Salvium Guardian Server - automated 3rd party for bounty escrow multisig

Endpoints (orchestrated by the bounty server):
  GET  /health           - Readiness + pending/completed counts
  POST /init-escrow      - Guardian creates wallet, returns round1
  POST /finalize-escrow  - Guardian does make + exchange, returns round2 + address
  POST /sync-outputs     - Export/import multisig info before building a tx
  POST /sign-refund      - Sign refund (only at/after deadline block)
  POST /sign-payout      - Sign payout (dispute resolution)
  GET  /bounty/<id>      - Bounty details (no seed)
  GET  /bounties         - All bounties (no seeds)

Pending wallets live in memory between init and finalize (5 min max). If the
server restarts, the bounty server retries from init.

Run:
  salvium-guardian serve --port 3012
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .errors import GuardianError, ValidationError
from .service import GuardianService

log = logging.getLogger("guardian.server")


# =============================================================================
# REQUEST VALIDATION
# =============================================================================

async def read_body(request: Request) -> Dict[str, Any]:
    try:
        data = await request.json()
    except ValueError:
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("No data provided")
    return data


def require_fields(data: Dict[str, Any], *fields: str):
    """Fail with every required field listed if any one is missing."""
    if any(data.get(f) is None or data.get(f) == "" for f in fields):
        label = "field" if len(fields) == 1 else "fields"
        raise ValidationError(f"Missing required {label}: {', '.join(fields)}")


def as_text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def as_block_height(value: Any, field: str) -> int:
    """Non-negative block height from an int or decimal string."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer block height")
    if isinstance(value, str):
        text = value.strip()
        # isdigit() alone admits superscripts and other non-decimal digits
        if text.isascii() and text.isdigit():
            value = int(text)
    if not isinstance(value, int) or value < 0:
        raise ValidationError(f"{field} must be an integer block height")
    return value


def as_hex(value: Any, field: str) -> str:
    text = as_text(value, field)
    try:
        bytes.fromhex(text)
    except ValueError:
        raise ValidationError(f"{field} must be hex encoded")
    return text


def as_str_list(value: Any, field: str) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be a list of strings")
    return value


# =============================================================================
# FASTAPI APP
# =============================================================================

def create_app(service: GuardianService, run_sweeper: bool = True) -> FastAPI:
    """Build the HTTP app around a guardian service.

    The lifespan initializes the service (engine + stored bounties), starts
    the cleanup sweeper, and releases every wallet on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await service.initialize()
        except Exception as e:
            log.error(f"Failed to start: {e}")
            raise
        if run_sweeper:
            service.sweeper.start()
        log.info("API Flow:")
        log.info("  1. POST /init-escrow     -> Get guardian_round1")
        log.info("  2. POST /finalize-escrow -> Complete key exchange")
        log.info("  3. POST /sign-refund     -> Sign refund (after deadline)")
        yield
        await service.shutdown()

    app = FastAPI(title="Salvium Guardian", version="0.1.0", lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GuardianError)
    async def guardian_error(request: Request, exc: GuardianError):
        if exc.status_code >= 500:
            log.error(f"{request.url.path} error: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.get("/health")
    async def health():
        """Health check."""
        return service.health()

    @app.post("/init-escrow")
    async def init_escrow(request: Request):
        """Step 1: guardian generates round1 for a new escrow."""
        service.require_initialized()
        data = await read_body(request)
        require_fields(data, "bounty_id")
        bounty_id = as_text(data["bounty_id"], "bounty_id")

        guardian_round1 = await service.begin(bounty_id)
        return {
            "success": True,
            "bounty_id": bounty_id,
            "guardian_round1": guardian_round1,
        }

    @app.post("/finalize-escrow")
    async def finalize_escrow(request: Request):
        """Step 2: make_multisig + exchange_multisig_keys with all parties' rounds."""
        service.require_initialized()
        data = await read_body(request)
        require_fields(data, "bounty_id", "deadline_block", "server_round1",
                       "server_round2", "worker_round1", "worker_round2")
        bounty_id = as_text(data["bounty_id"], "bounty_id")

        result = await service.finalize(
            bounty_id,
            as_block_height(data["deadline_block"], "deadline_block"),
            as_text(data["server_round1"], "server_round1"),
            as_text(data["server_round2"], "server_round2"),
            as_text(data["worker_round1"], "worker_round1"),
            as_text(data["worker_round2"], "worker_round2"),
        )
        return {
            "success": True,
            "bounty_id": bounty_id,
            "guardian_round1": result.own_round1,
            "guardian_round2": result.own_round2,
            "multisig_address": result.multisig_address,
            "is_ready": result.is_ready,
        }

    @app.post("/sync-outputs")
    async def sync_outputs(request: Request):
        """Export our multisig info, import the other parties'."""
        service.require_initialized()
        data = await read_body(request)
        require_fields(data, "bounty_id")
        bounty_id = as_text(data["bounty_id"], "bounty_id")

        info = await service.sync_outputs(
            bounty_id,
            as_str_list(data.get("other_multisig_info"), "other_multisig_info"),
        )
        return {
            "success": True,
            "bounty_id": bounty_id,
            "guardian_multisig_info": info,
        }

    @app.post("/sign-refund")
    async def sign_refund(request: Request):
        """Sign a refund transaction (only after deadline)."""
        service.require_initialized()
        data = await read_body(request)
        require_fields(data, "bounty_id", "current_block", "tx_data_hex")
        bounty_id = as_text(data["bounty_id"], "bounty_id")

        signed = await service.sign_refund(
            bounty_id,
            as_block_height(data["current_block"], "current_block"),
            as_hex(data["tx_data_hex"], "tx_data_hex"),
        )
        return {
            "success": True,
            "bounty_id": bounty_id,
            "tx_data_hex": signed.tx_data_hex,
            "signers": signed.signers,
            "ready": signed.ready,
        }

    @app.post("/sign-payout")
    async def sign_payout(request: Request):
        """Sign a payout transaction (dispute resolution - worker + guardian)."""
        service.require_initialized()
        data = await read_body(request)
        require_fields(data, "bounty_id", "tx_data_hex")
        bounty_id = as_text(data["bounty_id"], "bounty_id")
        reason = data.get("reason")

        signed = await service.sign_payout(
            bounty_id,
            as_hex(data["tx_data_hex"], "tx_data_hex"),
            str(reason) if reason is not None else None,
        )
        return {
            "success": True,
            "bounty_id": bounty_id,
            "tx_data_hex": signed.tx_data_hex,
            "signers": signed.signers,
            "ready": signed.ready,
        }

    @app.get("/bounty/{bounty_id}")
    async def get_bounty(bounty_id: str):
        return service.get_record(bounty_id)

    @app.get("/bounties")
    async def list_bounties():
        return service.list_records()

    return app
