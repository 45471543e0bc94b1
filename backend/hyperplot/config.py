from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # DDA land base (ArcGIS MapServer)
    gis_base_url: str = "https://gis.dda.gov.ae/server/rest/services/DDA/BASIC_LAND_BASE/MapServer"
    gis_plot_layer_id: int = 2
    gis_out_sr: int = 4326  # plot centroids (lat/lng) assume WGS84
    gis_timeout_s: float = 10.0
    gis_max_records: int = 200

    # Google Sheets cross-check
    sheets_api_key: str = ""
    sheets_spreadsheet_id: str = ""  # bare id or full docs.google.com URL
    sheets_name: str = "Sheet1"
    sheets_timeout_s: float = 8.0

    # Uploaded area research documents (JSON array), written by the ingestion job
    area_research_path: str = "data/area_research.json"

    redis_url: str = ""  # empty disables the cache
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
