"""Application Configuration Management"""

import os
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    app_name: str = "Cropify Admin 2FA"
    debug: bool = False

    gcp_project_id: str = os.getenv("GCP_PROJECT_ID", "cropify-dashboard")
    firestore_database: str = os.getenv("FIRESTORE_DATABASE", "(default)")

    # MFA records live at {mfa_collection}/{adminId}/{mfa_document_suffix}
    mfa_collection: str = "admins"
    mfa_document_suffix: str = "mfa/totp"

    # Authenticator provisioning
    mfa_service_name: str = os.getenv("MFA_SERVICE_NAME", "Cropify Admin")
    mfa_secret_bytes: int = int(os.getenv("MFA_SECRET_BYTES", "20"))
    mfa_backup_code_count: int = int(os.getenv("MFA_BACKUP_CODE_COUNT", "10"))

    # Secret-at-rest obfuscation. XOR is not encryption: set a per-deployment
    # passphrase and treat stored secrets as recoverable by anyone holding it.
    mfa_encryption_passphrase: str = os.getenv(
        "MFA_ENCRYPTION_PASSPHRASE", "Cropify2FA2024SecretKey!@#"
    )
    # Opt-in for legacy migrations: when true, undecodable stored secrets are
    # returned as-is. By default decryption errors are raised.
    mfa_legacy_secret_fail_open: bool = (
        os.getenv("MFA_LEGACY_SECRET_FAIL_OPEN", "false").lower() == "true"
    )

    # QR code image service used for the setup screen
    qr_code_service: str = os.getenv("QR_CODE_SERVICE", "qrserver")
    qr_code_size: int = int(os.getenv("QR_CODE_SIZE", "200"))

    # Persistence retry policy (transient Firestore errors only)
    persistence_max_retries: int = int(os.getenv("PERSISTENCE_MAX_RETRIES", "3"))
    persistence_retry_base_delay: float = float(
        os.getenv("PERSISTENCE_RETRY_BASE_DELAY", "0.2")
    )

    # Verification lockout (per admin, per process)
    mfa_max_failed_attempts: int = int(os.getenv("MFA_MAX_FAILED_ATTEMPTS", "5"))
    mfa_failure_window_seconds: int = int(
        os.getenv("MFA_FAILURE_WINDOW_SECONDS", "300")
    )
    mfa_lockout_seconds: int = int(os.getenv("MFA_LOCKOUT_SECONDS", "900"))

    # Local development without Firestore
    use_in_memory_store: bool = (
        os.getenv("USE_IN_MEMORY_STORE", "false").lower() == "true"
    )

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    otel_enabled: bool = os.getenv("OTEL_ENABLED", "true").lower() == "true"

    class Config:
        env_file = ".env.local"  # Use .env.local for local dev
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
