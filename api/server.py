"""HTTP API for vote submission, nullifier lookups and results."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, StrictInt
from starlette.exceptions import HTTPException as StarletteHTTPException

from ledger.vote_ledger import (
    ValidationError, DuplicateVoteError, InvalidProofError, OperationForbiddenError
)

logger = logging.getLogger(__name__)

REQUIRED_VOTE_FIELDS = ['proposal_id', 'nullifier', 'commitment', 'proof']


class ProofPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    proof: str
    public_inputs: List[str] = Field(alias="publicInputs")
    expires_at: Optional[StrictInt] = Field(default=None, alias="expiresAt")


class VoteRequest(BaseModel):
    proposal_id: StrictInt
    nullifier: str
    commitment: str
    proof: ProofPayload


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_app(system) -> FastAPI:
    """Build the API around an explicit PrivateVotingSystem instance"""
    config = system.config
    app = FastAPI(title="Private Voting API")
    app.state.system = system

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.server_config.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def missing_fields_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={
            'error': 'Missing required fields',
            'required': REQUIRED_VOTE_FIELDS
        })

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={'error': str(exc)})

    @app.exception_handler(InvalidProofError)
    async def invalid_proof_handler(request: Request, exc: InvalidProofError):
        return JSONResponse(status_code=400, content={'error': 'Invalid proof'})

    @app.exception_handler(DuplicateVoteError)
    async def duplicate_handler(request: Request, exc: DuplicateVoteError):
        return JSONResponse(status_code=409, content={
            'error': 'Vote already cast',
            'message': 'This nullifier has already been used'
        })

    @app.exception_handler(OperationForbiddenError)
    async def forbidden_handler(request: Request, exc: OperationForbiddenError):
        return JSONResponse(status_code=403, content={'error': str(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return JSONResponse(status_code=404, content={
                'error': 'Not found',
                'message': f"Route {request.method} {request.url.path} not found"
            })
        return JSONResponse(status_code=exc.status_code, content={'error': exc.detail})

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={
            'error': 'Internal server error',
            'message': str(exc)
        })

    @app.get("/api/health")
    def health():
        return {
            'status': 'ok',
            'mode': config.mode,
            'network': config.network,
            'timestamp': _now()
        }

    @app.post("/api/vote")
    def submit_vote(vote: VoteRequest):
        receipt = system.ledger.submit(
            vote.proposal_id,
            vote.nullifier,
            vote.commitment,
            vote.proof.model_dump(by_alias=True)
        )
        response = receipt.to_response()
        response['message'] = (
            'Vote recorded in demo mode' if receipt.mode == 'demo' else 'Vote recorded')
        return response

    @app.get("/api/has-voted/{nullifier}")
    def has_voted(nullifier: str):
        return {'hasVoted': system.has_voted(nullifier), 'mode': config.mode}

    @app.get("/api/results/{proposal_id}")
    def results(proposal_id: str):
        try:
            parsed = int(proposal_id)
        except ValueError:
            return JSONResponse(status_code=400, content={'error': 'Invalid proposal ID'})
        if parsed < 0:
            return JSONResponse(status_code=400, content={'error': 'Invalid proposal ID'})

        result = system.get_results(parsed)
        result.update({'mode': config.mode, 'timestamp': _now()})
        return result

    @app.get("/api/proposals")
    def proposals():
        return {'proposals': system.list_proposals(), 'mode': config.mode}

    @app.post("/api/reset")
    def reset():
        system.reset_demo_state()
        return {'success': True, 'message': 'Demo data reset successfully'}

    return app
