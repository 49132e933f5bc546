from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "CONTEST_", "env_file": ".env", "extra": "ignore"}

    engine_host: str = "0.0.0.0"
    engine_port: int = 3001
    db_path: str = str(Path.home() / ".forecast-contest" / "contest.duckdb")
    log_dir: str = str(Path.home() / ".forecast-contest" / "logs")

    # Civil calendar (Atlantic Standard Time, no DST)
    timezone: str = "America/Puerto_Rico"
    submission_close_hour: int = 17
    announcement_weekday: int = 5  # ISO weekday, Friday
    announcement_hour: int = 18

    # "range_table" matches the display table, "thresholds" splits out trace amounts
    precip_bucket_rule: Literal["range_table", "thresholds"] = "range_table"

    # Station files and schedule
    data_dir: str = "data"
    stations_file: str = str(Path(__file__).parent / "data" / "stations.json")
    schedule_overrides_path: str = "config/schedule_overrides.json"

    # Admin endpoints
    cron_secret: str = ""

    # Scheduling intervals (seconds)
    score_interval: int = 3600  # 1h
    announcement_interval: int = 3600


settings = Settings()
