"""Mission dispatch API endpoints."""
import asyncio
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel
from typing import Any, Dict, Optional

from configurations.config import Config
from core.exceptions import (AssignmentConflictError, DispatchError, MissionNotFoundError,
                             RouteConfigurationError, TransitionNotAllowedError)
from models.mission import Mission
from services.dispatch_coordinator import DispatchCoordinator

router = APIRouter(prefix="/api", tags=["dispatch"])

_coordinator: Optional[DispatchCoordinator] = None

def get_coordinator() -> DispatchCoordinator:
    global _coordinator
    if _coordinator is None:
        _coordinator = DispatchCoordinator.from_config()
    return _coordinator

class MissionRequest(BaseModel):
    mission_id: str
    pickup_lat: Optional[float] = None
    pickup_lng: Optional[float] = None
    dropoff_lat: Optional[float] = None
    dropoff_lng: Optional[float] = None
    servings: Optional[int] = None
    deadline: Optional[datetime] = None
    donor_id: Optional[str] = None
    food_name: str = ""
    vehicle_class: Optional[str] = None

class ClaimRequest(BaseModel):
    claimant_id: str

class AcceptRequest(BaseModel):
    agent_id: str

class StatusRequest(BaseModel):
    agent_id: str
    status: str

class RouteRequest(BaseModel):
    agent_lat: Optional[float] = None
    agent_lng: Optional[float] = None
    vehicle_class: Optional[str] = None

class TrackingRequest(BaseModel):
    agent_id: str
    vehicle_class: Optional[str] = None

class PositionRequest(BaseModel):
    lat: float
    lng: float

class HazardEventRequest(BaseModel):
    action: str
    hazard: Dict[str, Any]

def _pair(lat: Optional[float], lng: Optional[float]):
    return (lat, lng) if lat is not None and lng is not None else None

def mission_to_dict(mission: Mission) -> dict:
    return {
        "id": mission.mission_id,
        "pickup": list(mission.pickup) if mission.pickup else None,
        "dropoff": list(mission.dropoff) if mission.dropoff else None,
        "servings": mission.servings,
        "deadline": mission.deadline.isoformat() if mission.deadline else None,
        "claimed_at": mission.claimed_at.isoformat() if mission.claimed_at else None,
        "status": mission.status,
        "claimant_id": mission.claimant_id,
        "agent_id": mission.agent_id,
        "food_name": mission.food_name,
    }

def to_http_error(error: DispatchError) -> HTTPException:
    """Map core errors onto HTTP status codes."""
    if isinstance(error, AssignmentConflictError):
        return HTTPException(status_code=409, detail=str(error))
    if isinstance(error, MissionNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, TransitionNotAllowedError):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, RouteConfigurationError):
        return HTTPException(status_code=422, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))

@router.post("/missions", status_code=201)
def create_mission(body: MissionRequest, coordinator: DispatchCoordinator = Depends(get_coordinator)):
    """Register a donation as an available mission."""
    mission = Mission(
        mission_id=body.mission_id,
        pickup=_pair(body.pickup_lat, body.pickup_lng),
        dropoff=_pair(body.dropoff_lat, body.dropoff_lng),
        servings=body.servings,
        deadline=body.deadline,
        donor_id=body.donor_id,
        food_name=body.food_name,
        vehicle_class=body.vehicle_class,
    )
    try:
        coordinator.add_mission(mission)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "data": mission_to_dict(mission)}, status_code=201)

@router.get("/missions/ranked")
def ranked_missions(lat: Optional[float] = None, lng: Optional[float] = None,
                    coordinator: DispatchCoordinator = Depends(get_coordinator)):
    """Open missions ranked by priority for an agent base location."""
    ranked = coordinator.rank_open_missions(_pair(lat, lng))
    return JSONResponse({
        "status": "success",
        "count": len(ranked),
        "data": [
            {**mission_to_dict(r.mission), "score": r.score, "rank": r.rank}
            for r in ranked
        ],
    })

@router.patch("/missions/{mission_id}/claim")
def claim_mission(mission_id: str, body: ClaimRequest,
                  coordinator: DispatchCoordinator = Depends(get_coordinator)):
    try:
        mission = coordinator.assignment.claim(mission_id, body.claimant_id)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "message": "Donation claimed successfully",
                         "data": mission_to_dict(mission)})

@router.patch("/missions/{mission_id}/release")
def release_mission(mission_id: str, body: ClaimRequest,
                    coordinator: DispatchCoordinator = Depends(get_coordinator)):
    try:
        mission = coordinator.assignment.release(mission_id, body.claimant_id)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "message": "Claim released",
                         "data": mission_to_dict(mission)})

@router.patch("/missions/{mission_id}/accept")
def accept_mission(mission_id: str, body: AcceptRequest,
                   coordinator: DispatchCoordinator = Depends(get_coordinator)):
    try:
        mission = coordinator.assignment.accept(mission_id, body.agent_id)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "data": mission_to_dict(mission)})

@router.patch("/missions/{mission_id}/status")
def update_mission_status(mission_id: str, body: StatusRequest,
                          coordinator: DispatchCoordinator = Depends(get_coordinator)):
    try:
        mission = coordinator.advance(mission_id, body.agent_id, body.status)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "data": mission_to_dict(mission)})

@router.post("/missions/{mission_id}/route")
def mission_route(mission_id: str, body: RouteRequest,
                  coordinator: DispatchCoordinator = Depends(get_coordinator)):
    """Compute the hazard-checked two-leg route (blocking, runs in the threadpool)."""
    agent_pos = None
    if body.agent_lat is not None and body.agent_lng is not None:
        agent_pos = (body.agent_lat, body.agent_lng)
    try:
        route = coordinator.route_for_mission(mission_id, agent_pos, body.vehicle_class)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "data": route.to_dict()})

@router.post("/missions/{mission_id}/tracking")
def start_tracking(mission_id: str, body: TrackingRequest,
                   coordinator: DispatchCoordinator = Depends(get_coordinator)):
    """Start live tracking and replanning for the agent bound to a mission."""
    try:
        coordinator.start_tracking(mission_id, body.agent_id, body.vehicle_class)
    except DispatchError as e:
        raise to_http_error(e)
    return JSONResponse({"status": "success", "data": {"mission_id": mission_id, "agent_id": body.agent_id}})

@router.get("/agents/{agent_id}/tracking")
async def tracking_status(agent_id: str, coordinator: DispatchCoordinator = Depends(get_coordinator)):
    task = coordinator.tracking_task(agent_id)
    if task is None:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} is not being tracked")
    tracker = task.tracker
    position = tracker.current_position()
    route = tracker.state.route
    return JSONResponse({
        "status": "success",
        "data": {
            "agent_id": agent_id,
            "leg": tracker.current_leg(),
            "position": list(position) if position else None,
            "route_generation": tracker.state.route_generation,
            "route": route.to_dict() if route else None,
        },
    })

@router.patch("/agents/{agent_id}/location")
async def update_agent_location(agent_id: str, body: PositionRequest,
                                coordinator: DispatchCoordinator = Depends(get_coordinator)):
    try:
        coordinator.report_position(agent_id, body.lat, body.lng)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    reported_at = coordinator.positions.reported_at(agent_id)
    return JSONResponse({"ok": True, "reported_at": reported_at.isoformat()})

@router.get("/hazards")
async def list_hazards(coordinator: DispatchCoordinator = Depends(get_coordinator)):
    hazards = coordinator.hazard_model.snapshot()
    return JSONResponse({
        "status": "success",
        "count": len(hazards),
        "data": [
            {
                "id": h.hazard_id,
                "type": h.kind,
                "severity": h.severity,
                "blocking": h.is_blocking,
                "label": h.label,
            }
            for h in hazards
        ],
    })

@router.post("/hazards/events")
async def hazard_event(body: HazardEventRequest, coordinator: DispatchCoordinator = Depends(get_coordinator)):
    """Apply a pushed created/updated/deleted hazard change."""
    try:
        applied = coordinator.apply_hazard_event(body.action, body.hazard)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not applied:
        raise HTTPException(status_code=422, detail="Malformed hazard record")
    return JSONResponse({"status": "success", "count": len(coordinator.hazard_model.snapshot())})

async def poll_hazards(coordinator: DispatchCoordinator, interval: float) -> None:
    """Refresh the hazard snapshot from the feed until cancelled."""
    while True:
        try:
            await run_in_threadpool(coordinator.refresh_hazards)
        except Exception as e:
            logger.error(f"Hazard poll failed: {e}")
        await asyncio.sleep(interval)

@asynccontextmanager
async def lifespan(app: FastAPI):
    provider = app.dependency_overrides.get(get_coordinator, get_coordinator)
    coordinator = provider()
    poller = None
    if coordinator.hazard_feed is not None:
        logger.info(f"Polling hazard feed every {Config.HAZARD_POLL_SECONDS}s")
        poller = asyncio.create_task(poll_hazards(coordinator, Config.HAZARD_POLL_SECONDS))
    yield
    if poller is not None:
        poller.cancel()
        with suppress(asyncio.CancelledError):
            await poller
    coordinator.shutdown()

def create_app() -> FastAPI:
    app = FastAPI(
        title="Relief Dispatch Router",
        description="Mission priority ranking and hazard-aware delivery routing",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    logger.info("Dispatch API ready")
    return app

app = create_app()
