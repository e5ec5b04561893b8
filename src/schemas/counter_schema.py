from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # Las respuestas usan camelCase (es lo que espera el script embebido)
    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


class CountRequest(BaseModel):
    domain: Optional[str] = None
    page: Optional[str] = None


class CountResponse(CamelModel):
    success: bool = True
    domain: str
    page: str
    count: int
    today_count: int
    page_count: int
    timestamp: datetime


class SiteStatsOut(CamelModel):
    domain: str
    total_visits: int
    active_days: int
    first_visit: datetime
    last_visit: datetime
    visits_today: int
    visits_this_week: int
    visits_this_month: int
    total_pages: int
    daily_counts: Dict[str, int]
    page_counts: Dict[str, int]


class SiteSummaryOut(CamelModel):
    domain: str
    total_visits: int
    visits_today: int
    total_pages: int
    first_visit: datetime
    last_visit: datetime


class SitesResponse(CamelModel):
    total_sites: int
    sites: List[SiteSummaryOut]
    timestamp: datetime


class DailyVisitsOut(CamelModel):
    date: str
    visits: int


class VisitsByDateResponse(CamelModel):
    domain: Optional[str] = None
    days: int
    visits: List[DailyVisitsOut]


class HealthResponse(CamelModel):
    status: str
    ready: bool
    total_sites: int
    uptime: float
    version: str
    timestamp: datetime
    database: Optional[dict] = None
