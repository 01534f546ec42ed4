from qrtracker.db.models.qr_code import QRCode
from qrtracker.db.models.scan_event import ScanEvent
from qrtracker.db.models.user import User, UserRole

__all__ = [
    "QRCode",
    "ScanEvent",
    "User",
    "UserRole",
]
