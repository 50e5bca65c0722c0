from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    api_base_url: str = "http://localhost:3000"
    api_token: str = ""
    api_timeout_seconds: int = 30

    pdf_engine: str = "pymupdf"
    render_scale: float = 1.5
    viewport_max_width: int = 1200
    viewport_max_height: int = 900
    min_selection_size_px: int = 10

    ocr_engine: str = "tesseract"
    ocr_language: str = "eng+osd"
    tesseract_cmd: str = ""
    line_band_tolerance_px: float = 10.0

    mask_fill_color: str = "#000000"
    export_dir: str = "exports"
