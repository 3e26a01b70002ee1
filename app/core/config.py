"""Application configuration"""
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings"""
    
    # Application
    APP_NAME: str = "GeoEdge Panel"
    APP_ENV: str = "development"
    DEBUG: bool = False
    
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    
    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./data/panel.db"
    DATABASE_ECHO: bool = False
    
    # Redis (optional, used for the provisioning advisory lock)
    REDIS_URL: str = ""
    PROVISION_LOCK_TTL: int = 300
    
    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"
    
    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"
    
    # Cloudflare (edge provider)
    CF_API_TOKEN: str = ""
    CF_ZONE_ID: str = ""
    CF_API_BASE_URL: str = "https://api.cloudflare.com/client/v4"
    CF_MIN_TLS_VERSION: str = "1.2"
    
    # Aliyun DNS (authoritative provider)
    ALIYUN_ACCESS_KEY_ID: str = ""
    ALIYUN_ACCESS_KEY_SECRET: str = ""
    ALIYUN_DNS_ENDPOINT: str = "https://alidns.cn-hangzhou.aliyuncs.com"
    
    # Geo routing
    GEO_DOMESTIC_LINES: str = "telecom,unicom,mobile,edu"
    GEO_DEFAULT_LINE: str = "default"
    DNS_RECORD_TTL: int = 600
    
    # Public IP detection, tried in order
    PUBLIC_IP_SERVICES: str = "https://api.ipify.org?format=json,http://ip-api.com/json"
    
    # Timeout for every external HTTP call (seconds)
    HTTP_TIMEOUT: float = 10.0
    
    # Verification polling and sweep
    VERIFY_INITIAL_DELAY: float = 10.0
    VERIFY_INTERVAL: float = 30.0
    VERIFY_MAX_ATTEMPTS: int = 30
    SWEEP_INTERVAL: float = 120.0
    RECONCILE_BACKEND: str = "inprocess"  # inprocess | celery
    
    # Logging
    LOG_LEVEL: str = "INFO"
    
    @property
    def cors_origins(self) -> List[str]:
        return _split_csv(self.CORS_ORIGINS)
    
    @property
    def geo_domestic_lines(self) -> List[str]:
        return _split_csv(self.GEO_DOMESTIC_LINES)
    
    @property
    def public_ip_services(self) -> List[str]:
        return _split_csv(self.PUBLIC_IP_SERVICES)
    
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
