from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "photos"
    db_username: str = "photos"
    db_password: str = "secret"
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10

    max_static_file_bytes: int = 10 * 1024 * 1024
    max_animated_file_bytes: int = 5 * 1024 * 1024
    min_file_bytes: int = 100
    user_storage_quota_bytes: int = 100 * 1024 * 1024
    min_image_dimension: int = 10
    max_image_dimension: int = 8000

    output_quality: int = 85
    thumbnail_quality: int = 75

    moderation_provider: str = "example"
    moderation_openai_api_key: str = ""
    moderation_openai_model_name: str = "gpt-4o-mini"
    moderation_openai_compatible_base_url: str = ""
    moderation_timeout_seconds: int = 10
    moderation_profile: str = "strict"
    moderation_unavailable_policy: str = "pending"

    storage_backend: str = "local"
    storage_local_root: str = "./var/uploads"
    storage_public_base_url: str = "http://localhost:8000/media"
    storage_local_upload_base_url: str = "http://localhost:8000/uploads/local"
    storage_local_signing_secret: str = "dev-signing-secret"
    storage_gcs_bucket: str = ""
    storage_max_attempts: int = 3
    storage_timeout_seconds: int = 30
    storage_staging_prefix: str = "staging"
    storage_presign_expiry_minutes: int = 15
    storage_cache_control: str = "public, max-age=31536000"

    reconcile_interval_seconds: int = 300
    reconcile_grace_period_minutes: int = 60
    reconcile_staging_max_age_minutes: int = 60

    api_host: str = "0.0.0.0"
    api_port: int = 8000
