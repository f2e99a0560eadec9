from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "outfill"
    env: str = "local"
    log_level: str = "INFO"
    log_json: bool = False

    scale_factor: float = Field(default=1.05, ge=1.0)
    mask_dilation: float = Field(default=0.03, ge=0.0, le=1.0)
    base_steps: int = Field(default=50, gt=0)
    sample_count: int = 1
    fill_prompt: str = ""

    num_rounds: int = Field(default=100, gt=0)
    initial_path: str | None = None
    output_dir: str = "."
    output_prefix: str = "out"
    output_extension: Literal["jpg", "jpeg"] = "jpg"
    output_quality: int = Field(default=80, ge=1, le=100)
    matte_quality: int = Field(default=90, ge=1, le=100)
    backdrop_color: tuple[int, int, int] = (0, 0, 0)

    gcp_project_id: str = "your-project-id-here"
    gcp_location: str = "us-central1"
    imagen_model_id: str = "imagen-3.0-capability-001"
    predict_url: str | None = None

    credential_provider: str = "gcloud"  # gcloud|service_account|static
    gcloud_path: str = "gcloud"
    service_account_file: str | None = None
    access_token: SecretStr | None = None

    inpaint_timeout_seconds: float = 300.0
    inpaint_max_retries: int = Field(default=0, ge=0)
    inpaint_retry_backoff_seconds: float = 0.5

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    def resolved_predict_url(self) -> str:
        if self.predict_url:
            return self.predict_url
        loc = self.gcp_location
        return (
            f"https://{loc}-aiplatform.googleapis.com/v1/projects/{self.gcp_project_id}"
            f"/locations/{loc}/publishers/google/models/{self.imagen_model_id}:predict"
        )


settings = Settings()
