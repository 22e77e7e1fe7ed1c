# Transaction Tracker Services
from app.services.auth import AuthService
from app.services.device_info import DeviceInfo
from app.services.session_manager import SessionManager, TokenIdentity
from app.services.token_cleanup import TokenCleanupService
from app.services.token_codec import Claims, ClaimsCodec, TokenConfig
from app.services.token_store import TokenRecordStore

__all__ = [
    "AuthService",
    "Claims",
    "ClaimsCodec",
    "DeviceInfo",
    "SessionManager",
    "TokenCleanupService",
    "TokenConfig",
    "TokenIdentity",
    "TokenRecordStore",
]
