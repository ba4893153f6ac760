"""
Onboarding API Endpoints.

HTTP surface over FlowController. Each request rebuilds the session for
its ``X-Device-Id`` from the stored draft, applies one transition, and the
controller writes the draft back before the response goes out.
"""

import logging
from functools import lru_cache

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from .catalog import StepDescriptor, parse_role, steps_for
from .config import get_settings
from .controller import FlowController, IllegalTransitionError, TransitionResult
from .gamification import level_title, points_to_next_level
from .persistence import DraftPersistence, draft_key
from .ports import AcceptingAccountCreator, AccountCreator
from .stores import DraftStore, create_draft_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


# =============================================================================
# Dependencies
# =============================================================================

@lru_cache
def get_draft_store() -> DraftStore:
    return create_draft_store(get_settings())


def get_account_creator() -> AccountCreator:
    return AcceptingAccountCreator()


def get_persistence(
    x_device_id: str = Header(..., alias="X-Device-Id"),
    store: DraftStore = Depends(get_draft_store),
) -> DraftPersistence:
    if not x_device_id.strip():
        raise HTTPException(status_code=400, detail="Missing X-Device-Id header")
    return DraftPersistence(store, draft_key(x_device_id.strip()))


def get_controller(
    persistence: DraftPersistence = Depends(get_persistence),
    account_creator: AccountCreator = Depends(get_account_creator),
) -> FlowController:
    """Session for this device, resumed from its draft when one is valid."""
    controller = FlowController(persistence=persistence, account_creator=account_creator)
    controller.resume()
    return controller


# =============================================================================
# Request/Response Models
# =============================================================================

class RoleRequest(BaseModel):
    role: str


class StepInput(BaseModel):
    """Answers for the current step."""
    data: dict = Field(default_factory=dict)


class StepResponse(BaseModel):
    id: str
    phase: str
    title: str
    subtitle: str = ""
    skippable: bool = False
    point_reward: int = 0
    required_fields: list[str] = Field(default_factory=list)


class AchievementResponse(BaseModel):
    id: str
    name: str
    points: int


class StateResponse(BaseModel):
    """Current onboarding state response."""
    role: str | None
    status: str
    current_step_index: int
    current_step: StepResponse
    total_steps: int
    progress: int
    points: int
    level: int
    level_title: str
    points_to_next_level: int
    achievements: list[str]
    form_data: dict


class TransitionResponse(BaseModel):
    """Response after a transition."""
    success: bool
    errors: dict[str, str] = Field(default_factory=dict)
    account_error: str | None = None
    points_gained: int = 0
    achievements: list[AchievementResponse] = Field(default_factory=list)
    leveled_up: bool = False
    completed: bool = False
    state: StateResponse


class DraftResponse(BaseModel):
    exists: bool
    role: str | None = None
    saved_at: str | None = None
    days_remaining: int | None = None


# =============================================================================
# Serialization Helpers
# =============================================================================

def step_to_response(step: StepDescriptor) -> StepResponse:
    return StepResponse(
        id=step.id,
        phase=step.phase.value,
        title=step.title,
        subtitle=step.subtitle,
        skippable=step.skippable,
        point_reward=step.point_reward,
        required_fields=sorted(step.required_fields),
    )


def state_to_response(controller: FlowController) -> StateResponse:
    gamification = controller.gamification
    return StateResponse(
        role=controller.role.value if controller.role else None,
        status=controller.status.value,
        current_step_index=controller.current_step_index,
        current_step=step_to_response(controller.current_step),
        total_steps=len(controller.steps),
        progress=controller.progress(),
        points=gamification.points,
        level=controller.level,
        level_title=level_title(controller.level),
        points_to_next_level=points_to_next_level(gamification.points, controller.points_per_level),
        achievements=[a.id for a in gamification.achievements],
        form_data=controller.form_data,
    )


def transition_to_response(controller: FlowController, result: TransitionResult) -> TransitionResponse:
    if result.errors:
        raise HTTPException(status_code=422, detail={"errors": result.errors})

    return TransitionResponse(
        success=result.ok,
        account_error=result.account_error,
        points_gained=result.points_gained,
        achievements=[
            AchievementResponse(id=a.id, name=a.name, points=a.point_reward)
            for a in result.achievements
        ],
        leveled_up=result.leveled_up,
        completed=result.completed,
        state=state_to_response(controller),
    )


# =============================================================================
# Endpoints: State
# =============================================================================

@router.get("/state", response_model=StateResponse)
def get_state(controller: FlowController = Depends(get_controller)) -> StateResponse:
    """Current onboarding progress for this device."""
    return state_to_response(controller)


@router.get("/steps", response_model=list[StepResponse])
def get_steps(role: str | None = None) -> list[StepResponse]:
    """Step catalog for a role, or the shared prefix when no role is given."""
    try:
        parsed = parse_role(role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {role}")
    return [step_to_response(step) for step in steps_for(parsed)]


# =============================================================================
# Endpoints: Transitions
# =============================================================================

@router.post("/role", response_model=TransitionResponse)
def select_role(
    request: RoleRequest,
    controller: FlowController = Depends(get_controller),
) -> TransitionResponse:
    try:
        role = parse_role(request.role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role: {request.role}")

    try:
        result = controller.select_role(role)
    except IllegalTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return transition_to_response(controller, result)


@router.post("/advance", response_model=TransitionResponse)
def advance(
    request: StepInput,
    controller: FlowController = Depends(get_controller),
) -> TransitionResponse:
    try:
        result = controller.advance(request.data)
    except IllegalTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return transition_to_response(controller, result)


@router.post("/retreat", response_model=TransitionResponse)
def retreat(
    request: StepInput,
    controller: FlowController = Depends(get_controller),
) -> TransitionResponse:
    try:
        result = controller.retreat(request.data)
    except IllegalTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return transition_to_response(controller, result)


@router.post("/skip", response_model=TransitionResponse)
def skip(controller: FlowController = Depends(get_controller)) -> TransitionResponse:
    """Skip the current step if skippable."""
    try:
        result = controller.skip()
    except IllegalTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return transition_to_response(controller, result)


# =============================================================================
# Endpoints: Draft
# =============================================================================

@router.get("/draft", response_model=DraftResponse)
def get_draft(persistence: DraftPersistence = Depends(get_persistence)) -> DraftResponse:
    """Whether a resumable draft exists and how long it has left."""
    info = persistence.draft_info()
    return DraftResponse(
        exists=info.exists,
        role=info.role.value if info.role else None,
        saved_at=info.saved_at.isoformat() if info.saved_at else None,
        days_remaining=info.days_remaining,
    )


@router.delete("/draft", status_code=204)
def delete_draft(persistence: DraftPersistence = Depends(get_persistence)) -> None:
    """Start over: drop the stored draft."""
    persistence.discard()


def create_app() -> FastAPI:
    app = FastAPI(title="Onboarding Flow")
    app.include_router(router)
    return app
