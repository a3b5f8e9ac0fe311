from fastapi import APIRouter, Depends, HTTPException, Query

from api.auth import verify_api_key
from api.dependencies import VehicleTrackingDep
from api.models.vehicle import VehicleUpdateRequest
from core.exceptions import NotFoundError
from vehicle.service import SimulationStatus, TickOutcome, VehicleSnapshot

router = APIRouter()
simulation_router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.get("", response_model=VehicleSnapshot)
def get_vehicle_tracking(
    vehicles: VehicleTrackingDep,
    waybill: str | None = Query(default=None),
) -> VehicleSnapshot | None:
    """Vehicle snapshot for a shipment, creating its tracking on first request."""
    if not waybill:
        raise HTTPException(status_code=400, detail="Waybill number required")
    try:
        snapshot = vehicles.get_snapshot(waybill, create=True)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    return snapshot


@router.post("", response_model=VehicleSnapshot, dependencies=[Depends(verify_api_key)])
def update_vehicle_tracking(
    body: VehicleUpdateRequest, vehicles: VehicleTrackingDep
) -> VehicleSnapshot:
    if (body.latitude is None) != (body.longitude is None):
        raise HTTPException(status_code=400, detail="latitude and longitude go together")
    try:
        return vehicles.update_tracking(
            body.waybill_number,
            latitude=body.latitude,
            longitude=body.longitude,
            speed=body.speed,
            is_paused=body.is_paused,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e


@simulation_router.get("", response_model=SimulationStatus)
def get_simulation_status(vehicles: VehicleTrackingDep) -> SimulationStatus:
    return vehicles.status()


@simulation_router.post("/tick", response_model=list[TickOutcome])
def run_simulation_tick(vehicles: VehicleTrackingDep) -> list[TickOutcome]:
    """Run one simulation cycle immediately."""
    return vehicles.tick()
