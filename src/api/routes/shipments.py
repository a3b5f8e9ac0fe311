from fastapi import APIRouter, Depends, HTTPException

from api.auth import verify_api_key
from api.dependencies import ShipmentServiceDep
from api.models.shipments import (
    CreateShipmentRequest,
    ShipmentDetailResponse,
    ShipmentResponse,
)
from core.exceptions import NotFoundError

router = APIRouter(dependencies=[Depends(verify_api_key)])


@router.post("", response_model=ShipmentResponse, status_code=201)
def create_shipment(body: CreateShipmentRequest, shipments: ShipmentServiceDep) -> ShipmentResponse:
    shipment = shipments.create_shipment(**body.model_dump())
    return ShipmentResponse.model_validate(shipment)


@router.get("", response_model=list[ShipmentResponse])
def list_shipments(shipments: ShipmentServiceDep) -> list[ShipmentResponse]:
    return [ShipmentResponse.model_validate(s) for s in shipments.list_shipments()]


@router.get("/{waybill}", response_model=ShipmentDetailResponse)
def get_shipment(waybill: str, shipments: ShipmentServiceDep) -> ShipmentDetailResponse:
    try:
        shipment = shipments.get_shipment(waybill)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message) from e
    return ShipmentDetailResponse.model_validate(shipment)
