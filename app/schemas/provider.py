"""Typed response contracts for the edge and authoritative DNS providers"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class VerificationRecord(BaseModel):
    """DNS record the edge provider asks us to publish (TXT or CNAME)"""
    name: str
    value: str
    type: str = "TXT"


class CustomHostname(BaseModel):
    """Cloudflare custom hostname, reduced to what provisioning needs"""
    id: str
    hostname: str = ""
    status: Optional[str] = None
    ssl_status: Optional[str] = None
    ownership_verification: Optional[VerificationRecord] = None
    validation_records: List[VerificationRecord] = Field(default_factory=list)
    
    @property
    def is_active(self) -> bool:
        return self.status == "active" and self.ssl_status == "active"
    
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CustomHostname":
        """Build from a Cloudflare v4 ``custom_hostnames`` result object"""
        ssl = data.get("ssl") or {}
        
        ownership = None
        ov = data.get("ownership_verification") or {}
        if ov.get("name") and ov.get("value"):
            ownership = VerificationRecord(
                name=ov["name"],
                value=ov["value"],
                type=(ov.get("type") or "txt").upper(),
            )
        
        records = []
        for vr in ssl.get("validation_records") or []:
            if vr.get("txt_name") and vr.get("txt_value"):
                records.append(VerificationRecord(name=vr["txt_name"], value=vr["txt_value"], type="TXT"))
            elif vr.get("cname") and vr.get("cname_target"):
                records.append(VerificationRecord(name=vr["cname"], value=vr["cname_target"], type="CNAME"))
            # http validation records need no DNS
        
        return cls(
            id=data["id"],
            hostname=data.get("hostname", ""),
            status=data.get("status"),
            ssl_status=ssl.get("status"),
            ownership_verification=ownership,
            validation_records=records,
        )
    
    def dns_records(self) -> List[VerificationRecord]:
        """Every record that has to exist at the authoritative DNS"""
        records = []
        if self.ownership_verification and self.ownership_verification.type == "TXT":
            records.append(self.ownership_verification)
        records.extend(self.validation_records)
        return records


class EdgeDnsRecord(BaseModel):
    """DNS record hosted in the Cloudflare zone"""
    id: str
    name: str
    type: str
    content: str
    proxied: bool = False


class AuthoritativeRecord(BaseModel):
    """Aliyun DNS record"""
    id: str
    relative_name: str
    type: str
    value: str
    line: str = "default"
    
    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AuthoritativeRecord":
        return cls(
            id=str(data["RecordId"]),
            relative_name=data.get("RR", ""),
            type=data.get("Type", ""),
            value=data.get("Value", ""),
            line=data.get("Line", "default"),
        )
