"""
Dashboard statistics and trip reports.
"""
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query

from ...services.dashboard import DashboardService
from ..deps import get_dashboard

router = APIRouter(prefix="/api", tags=["Dashboard"])


@router.get("/bookings/stats/dashboard", response_model=Dict[str, Any])
async def dashboard_stats(
    startDate: Optional[datetime] = Query(None, description="Created on or after"),
    endDate: Optional[datetime] = Query(None, description="Created on or before"),
    dashboard: DashboardService = Depends(get_dashboard),
):
    return await dashboard.summarize(startDate, endDate)


@router.get("/reports/trips", response_model=Dict[str, Any])
async def trip_report(
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    reportType: Literal["daily", "weekly", "monthly"] = Query("daily"),
    dashboard: DashboardService = Depends(get_dashboard),
):
    return await dashboard.trip_report(startDate, endDate, reportType)
