from app.core.config import Settings


def test_csv_settings_are_split(monkeypatch):
    monkeypatch.setenv("GEO_DOMESTIC_LINES", "telecom, unicom,,mobile ")
    monkeypatch.setenv("CORS_ORIGINS", "https://panel.example.com")
    
    config = Settings(_env_file=None)
    
    assert config.geo_domestic_lines == ["telecom", "unicom", "mobile"]
    assert config.cors_origins == ["https://panel.example.com"]


def test_defaults(monkeypatch):
    monkeypatch.delenv("RECONCILE_BACKEND", raising=False)
    
    config = Settings(_env_file=None)
    
    assert config.DATABASE_URL.startswith("sqlite+aiosqlite://")
    assert config.RECONCILE_BACKEND == "inprocess"
    assert config.VERIFY_MAX_ATTEMPTS == 30
    assert config.public_ip_services[0] == "https://api.ipify.org?format=json"


def test_settings_read_env_file_case_sensitively():
    assert Settings.model_config["env_file"] == ".env"
    assert Settings.model_config["case_sensitive"] is True
