"""
Milestone Ledger: HTTP API
==========================

Thin FastAPI adapter over LedgerContext. Every mutating endpoint maps
1:1 onto a ledger operation; every failure surfaces the ledger's
ErrorCode unchanged.

The caller identity is taken from the X-Caller-Id header, which the
upstream authenticating proxy is trusted to set. This service does
not authenticate.

Endpoints:
- POST /api/v1/users                                  -> register
- POST /api/v1/relationships                          -> create_relationship
- POST /api/v1/forests                                -> create_forest
- POST /api/v1/milestones                             -> create_milestone
- POST /api/v1/milestones/{id}/prerequisites          -> add_prerequisite
- POST /api/v1/milestones/{id}/completions            -> complete_milestone
- POST /api/v1/milestones/{id}/self-completion        -> self_complete_milestone
- GET  lookups for users, relationships, forests, milestones, completions

Usage:
    uvicorn milestone_ledger.api.server:app
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel

from ..contracts.base import Result
from ..engine import LedgerConfig, LedgerContext
from .mapper import (
    map_completion, map_edge, map_error, map_forest, map_milestone,
    map_progress, map_relationship, map_tree, map_user, status_for_error,
)

logger = logging.getLogger(__name__)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class RegisterRequest(BaseModel):
    name: str
    role: int


class RelationshipRequest(BaseModel):
    subject_id: str
    kind: str


class ForestRequest(BaseModel):
    name: str
    description: str = ""


class MilestoneRequest(BaseModel):
    title: str
    description: str = ""
    category: str = ""
    difficulty: int
    forest_id: int
    parent_milestone_id: Optional[int] = None


class PrerequisiteRequest(BaseModel):
    prerequisite_id: int


class CompletionRequest(BaseModel):
    learner_id: str
    evidence_url: Optional[str] = None


class SelfCompletionRequest(BaseModel):
    evidence_url: Optional[str] = None


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_ledger(request: Request) -> LedgerContext:
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise HTTPException(status_code=503, detail="Ledger not initialized")
    return ledger


def get_caller(x_caller_id: Optional[str] = Header(None)) -> str:
    if not x_caller_id:
        raise HTTPException(status_code=401, detail="Missing X-Caller-Id header")
    return x_caller_id


def _unwrap(result: Result):
    if result.is_failure:
        raise HTTPException(
            status_code=status_for_error(result.error),
            detail=map_error(result.error)
        )
    return result.value


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{what} not found")


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(ledger: Optional[LedgerContext] = None) -> FastAPI:
    """
    Build the API. With no ledger given, one is constructed at startup
    from MILESTONE_LEDGER_* environment variables.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "ledger", None) is None:
            config = LedgerConfig.from_env()
            logger.info(
                "Initializing ledger (storage=%s, owner=%s)",
                config.storage.backend_type, config.platform_owner or "-"
            )
            app.state.ledger = LedgerContext(config)
        yield
        logger.info("Shutting down ledger API")

    app = FastAPI(
        title="Milestone Ledger API",
        version="0.1.0",
        description="Authorization-checked ledger of learning milestones and completions",
        lifespan=lifespan
    )
    app.state.ledger = ledger

    @app.get("/health")
    async def health_check(ledger: LedgerContext = Depends(get_ledger)):
        """System status."""
        integrity = ledger.verify_integrity()
        return {
            "status": "online" if integrity.is_success else "degraded",
            "operations": len(ledger.event_log),
            "state_hash": ledger.state_hash(),
        }

    # -------------------------------------------------------------------------
    # Identity & relationships
    # -------------------------------------------------------------------------

    @app.post("/api/v1/users", status_code=201)
    def register(
        body: RegisterRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        return map_user(_unwrap(ledger.register(caller, body.name, body.role)))

    @app.get("/api/v1/users/{identity}")
    def get_user(identity: str, ledger: LedgerContext = Depends(get_ledger)):
        user = ledger.get_user(identity)
        if user is None:
            raise _not_found("User")
        return map_user(user)

    @app.post("/api/v1/relationships", status_code=201)
    def create_relationship(
        body: RelationshipRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        result = ledger.create_relationship(caller, body.subject_id, body.kind)
        return map_relationship(_unwrap(result))

    @app.get("/api/v1/relationships/{manager}/{subject}")
    def get_relationship(manager: str, subject: str, ledger: LedgerContext = Depends(get_ledger)):
        rel = ledger.get_user_relationship(manager, subject)
        if rel is None:
            raise _not_found("Relationship")
        return map_relationship(rel)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    @app.post("/api/v1/forests", status_code=201)
    def create_forest(
        body: ForestRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        forest_id = _unwrap(ledger.create_forest(caller, body.name, body.description))
        return {"forest_id": forest_id.value}

    @app.get("/api/v1/forests/{forest_id}")
    def get_forest(forest_id: int, ledger: LedgerContext = Depends(get_ledger)):
        forest = ledger.get_forest(forest_id)
        if forest is None:
            raise _not_found("Forest")
        return map_forest(forest)

    @app.get("/api/v1/forests/{forest_id}/tree")
    def get_forest_tree(forest_id: int, ledger: LedgerContext = Depends(get_ledger)):
        roots = _unwrap(ledger.forest_tree(forest_id))
        return map_tree(forest_id, roots)

    @app.get("/api/v1/forests/{forest_id}/progress/{learner}")
    def get_progress(forest_id: int, learner: str, ledger: LedgerContext = Depends(get_ledger)):
        return map_progress(_unwrap(ledger.learner_progress(learner, forest_id)))

    @app.get("/api/v1/forests/{forest_id}/available/{learner}")
    def get_available(forest_id: int, learner: str, ledger: LedgerContext = Depends(get_ledger)):
        available = _unwrap(ledger.available_milestones(learner, forest_id))
        return {"learner": learner, "milestone_ids": [m.value for m in available]}

    @app.post("/api/v1/milestones", status_code=201)
    def create_milestone(
        body: MilestoneRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        milestone_id = _unwrap(ledger.create_milestone(
            caller, body.title, body.description, body.category,
            body.difficulty, body.forest_id, body.parent_milestone_id
        ))
        return {"milestone_id": milestone_id.value}

    @app.get("/api/v1/milestones/{milestone_id}")
    def get_milestone(milestone_id: int, ledger: LedgerContext = Depends(get_ledger)):
        milestone = ledger.get_milestone(milestone_id)
        if milestone is None:
            raise _not_found("Milestone")
        return map_milestone(milestone, ledger.get_prerequisites(milestone_id))

    @app.post("/api/v1/milestones/{milestone_id}/prerequisites", status_code=201)
    def add_prerequisite(
        milestone_id: int,
        body: PrerequisiteRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        result = ledger.add_prerequisite(caller, milestone_id, body.prerequisite_id)
        return map_edge(_unwrap(result))

    # -------------------------------------------------------------------------
    # Completion ledger
    # -------------------------------------------------------------------------

    @app.post("/api/v1/milestones/{milestone_id}/completions", status_code=201)
    def complete_milestone(
        milestone_id: int,
        body: CompletionRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        result = ledger.complete_milestone(
            caller, milestone_id, body.learner_id, body.evidence_url
        )
        return map_completion(_unwrap(result))

    @app.post("/api/v1/milestones/{milestone_id}/self-completion", status_code=201)
    def self_complete_milestone(
        milestone_id: int,
        body: SelfCompletionRequest,
        caller: str = Depends(get_caller),
        ledger: LedgerContext = Depends(get_ledger)
    ):
        result = ledger.self_complete_milestone(caller, milestone_id, body.evidence_url)
        return map_completion(_unwrap(result))

    @app.get("/api/v1/milestones/{milestone_id}/completions/{learner}")
    def get_completion(milestone_id: int, learner: str, ledger: LedgerContext = Depends(get_ledger)):
        completion = ledger.get_milestone_completion(milestone_id, learner)
        return {
            "milestone_id": milestone_id,
            "learner": learner,
            "completed": completion is not None,
            "completion": map_completion(completion) if completion else None,
        }

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    @app.get("/api/v1/topology/cycles")
    def get_cycles(ledger: LedgerContext = Depends(get_ledger)):
        topology = ledger.prerequisite_topology()
        return {
            "acyclic": topology.is_acyclic(),
            "cycles": [[m.value for m in cycle] for cycle in topology.find_cycles()],
        }

    @app.get("/api/v1/audit")
    def get_audit_report(ledger: LedgerContext = Depends(get_ledger)):
        return ledger.audit.generate_report()

    return app


app = create_app()
