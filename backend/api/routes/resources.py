"""
Directory APIs for drivers, vehicles, customers and packages.
"""
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from ...models import AvailabilityUpdate, KycStatus, KycUpdate
from ...services.directory import DriverDirectory, ResourceDirectory
from ..deps import get_customers, get_drivers, get_packages, get_vehicles

router = APIRouter(prefix="/api", tags=["Directories"])


def dump(record) -> Dict[str, Any]:
    return record.model_dump(mode="json")


def register_directory(path: str, dependency: Callable[..., ResourceDirectory]):
    """List, create, fetch and update routes for one directory."""

    @router.get(f"/{path}", response_model=Dict[str, Any], name=f"list_{path}")
    async def list_records(
        search: Optional[str] = Query(None),
        isActive: Optional[bool] = Query(None),
        isAvailable: Optional[bool] = Query(None),
        page: int = Query(1, ge=1),
        limit: int = Query(20, ge=1, le=100),
        directory: ResourceDirectory = Depends(dependency),
    ):
        filters = {"isActive": isActive}
        if "isAvailable" in directory.model.model_fields:
            filters["isAvailable"] = isAvailable
        result = await directory.list(filters=filters, search=search, page=page, limit=limit)
        return {path: [dump(r) for r in result["items"]], "pagination": result["pagination"]}

    @router.post(f"/{path}", response_model=Dict[str, Any], status_code=201, name=f"create_{path}")
    async def create_record(data: Dict[str, Any] = Body(...), directory: ResourceDirectory = Depends(dependency)):
        return dump(await directory.create(data))

    @router.get(f"/{path}/{{record_id}}", response_model=Dict[str, Any], name=f"get_{path}")
    async def get_record(record_id: str, directory: ResourceDirectory = Depends(dependency)):
        return dump(await directory.get(record_id))

    @router.put(f"/{path}/{{record_id}}", response_model=Dict[str, Any], name=f"update_{path}")
    async def update_record(
        record_id: str,
        changes: Dict[str, Any] = Body(...),
        directory: ResourceDirectory = Depends(dependency),
    ):
        return dump(await directory.update(record_id, changes))


register_directory("drivers", get_drivers)
register_directory("vehicles", get_vehicles)
register_directory("customers", get_customers)
register_directory("packages", get_packages)


@router.put("/drivers/{driver_id}/kyc", response_model=Dict[str, Any])
async def update_driver_kyc(driver_id: str, request: KycUpdate, drivers: DriverDirectory = Depends(get_drivers)):
    driver = await drivers.set_kyc_status(driver_id, KycStatus(request.kycStatus), notes=request.notes)
    return {"message": f"Driver KYC status updated to {driver.kycStatus.value}", "driver": dump(driver)}


@router.put("/drivers/{driver_id}/availability", response_model=Dict[str, Any])
async def update_driver_availability(
    driver_id: str,
    request: AvailabilityUpdate,
    drivers: DriverDirectory = Depends(get_drivers),
):
    driver = await drivers.set_availability(driver_id, request.isAvailable)
    return {"message": "Driver availability updated", "driver": dump(driver)}
