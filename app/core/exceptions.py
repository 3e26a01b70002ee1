"""Error taxonomy shared by services and the HTTP layer"""
from typing import Optional


class PanelError(Exception):
    """Base error carrying a machine-readable code and an HTTP status"""
    
    status_code: int = 500
    default_code: str = "internal_error"
    
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
    
    def to_dict(self) -> dict:
        return {"success": False, "code": self.code, "message": self.message}


class ValidationError(PanelError):
    """Missing or malformed caller input, never retried"""
    status_code = 400
    default_code = "validation_error"


class NotFoundError(PanelError):
    status_code = 404
    default_code = "not_found"


class ConflictError(PanelError):
    """A record already exists locally or at one of the providers"""
    status_code = 409
    default_code = "conflict"
    
    DNS_RECORD_EXISTS = "dns_record_exists"
    EDGE_RECORD_EXISTS = "edge_record_exists"
    DOMAIN_EXISTS = "domain_exists"


class UpstreamError(PanelError):
    """An external provider call failed"""
    status_code = 502
    default_code = "upstream_error"
    
    def __init__(self, message: str, provider: Optional[str] = None, code: Optional[str] = None):
        super().__init__(message, code=code)
        self.provider = provider
