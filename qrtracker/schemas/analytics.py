from datetime import datetime

from pydantic import BaseModel, ConfigDict

from qrtracker.schemas.qr import QRCodeOut


class AnalyticsOverview(BaseModel):
    total_qr_codes: int = 0
    total_scans: int = 0
    scans_today: int = 0
    scans_this_week: int = 0
    scans_this_month: int = 0


class TimeSeriesPoint(BaseModel):
    date: str
    scans: int


class ScanEventOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    qr_code_id: int
    ip_address: str | None = None
    user_agent: str | None = None
    country: str | None = None
    city: str | None = None
    browser: str | None = None
    device_type: str | None = None
    scanned_at: datetime


class QRAnalytics(BaseModel):
    qr_code: QRCodeOut
    total_scans: int
    recent_scans: list[ScanEventOut]
    time_series: list[TimeSeriesPoint]
