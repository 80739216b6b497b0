"""
Configuration Management

Centralized configuration management using environment variables.
Values a component cannot run without are checked by that component,
so the API can start (and report errors per stage) with a partial setup.
"""

import os
from typing import List, Optional
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv


# Load environment variables from .env in the project root (resolve to absolute path)
_project_root = Path(__file__).resolve().parent.parent
_env_path = _project_root / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=str(_env_path))
else:
    # Also load from current working directory so "python backend_server.py" picks up .env
    load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


def _env_list(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [item.strip().rstrip("/") for item in raw.split(",") if item.strip()]


@dataclass
class StorageConfig:
    """Object storage configuration (Supabase Storage or S3)"""
    backend: str = "supabase"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    bucket: str = "resumes"
    key_prefix: str = ""


@dataclass
class S3Config:
    """AWS configuration shared by S3, Textract and EventBridge Scheduler"""
    bucket: Optional[str] = None
    region: str = "us-east-1"
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


@dataclass
class ExtractionConfig:
    """Text extraction configuration"""
    backend: str = "local"
    poll_interval: float = 1.0
    max_polls: int = 120


@dataclass
class GeminiConfig:
    """Google Gemini LLM configuration"""
    api_key: Optional[str] = None
    model: str = "gemini-1.5-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    temperature: float = 0.2


@dataclass
class SheetConfig:
    """Spreadsheet script endpoint (e.g. Google Apps Script web app)"""
    script_url: Optional[str] = None
    sheet_name: str = "Sheet1"


@dataclass
class SMTPConfig:
    """SMTP email configuration"""
    host: Optional[str] = None
    port: int = 587
    secure: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    from_name: str = "The Hiring Team"
    from_email: Optional[str] = None


@dataclass
class EmailAPIConfig:
    """HTTP email provider used for provider-scheduled sends"""
    api_key: Optional[str] = None
    base_url: str = "https://api.resend.com"
    from_email: Optional[str] = None


@dataclass
class FollowUpConfig:
    """Follow-up email scheduling"""
    strategy: str = "provider"
    hour: int = 10
    timezone: str = "UTC"
    subject: str = "Your Application is Under Review"
    scheduler_target_arn: Optional[str] = None
    scheduler_role_arn: Optional[str] = None
    scheduler_group: str = "default"


@dataclass
class WebhookConfig:
    """Outbound webhook configuration"""
    url: Optional[str] = None
    status: str = "prod"
    candidate_email: Optional[str] = None


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    frontend_url: str = ""
    cors_origins: List[str] = field(default_factory=list)
    submit_rate_limit: str = "10/minute"


@dataclass
class Config:
    """Main application configuration"""

    storage: StorageConfig
    s3: S3Config
    extraction: ExtractionConfig
    gemini_llm: GeminiConfig
    sheet: SheetConfig
    smtp: SMTPConfig
    email_api: EmailAPIConfig
    follow_up: FollowUpConfig
    webhook: WebhookConfig
    server: ServerConfig

    # Upload limits
    MAX_FILE_SIZE: int = 10 * 1024 * 1024  # 10MB

    # Timeout for outbound HTTP and SMTP calls (seconds)
    HTTP_TIMEOUT: float = 30.0

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    @classmethod
    def from_env(cls) -> "Config":
        """
        Create configuration from environment variables.

        Returns:
            Configured Config instance
        """
        smtp_port = os.getenv("SMTP_PORT", "587")
        smtp_secure = _env_bool("SMTP_SECURE") or smtp_port == "465"

        return cls(
            storage=StorageConfig(
                backend=os.getenv("STORAGE_BACKEND", "supabase").lower(),
                supabase_url=os.getenv("SUPABASE_URL") or None,
                supabase_key=os.getenv("SUPABASE_SERVICE_KEY") or None,
                bucket=os.getenv("STORAGE_BUCKET", "resumes"),
                key_prefix=os.getenv("STORAGE_KEY_PREFIX", "").strip("/"),
            ),
            s3=S3Config(
                bucket=os.getenv("S3_BUCKET_NAME") or None,
                region=os.getenv("AWS_REGION", "us-east-1"),
                access_key_id=os.getenv("AWS_ACCESS_KEY_ID") or None,
                secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY") or None,
            ),
            extraction=ExtractionConfig(
                backend=os.getenv("TEXT_EXTRACTOR", "local").lower(),
                poll_interval=float(os.getenv("EXTRACTION_POLL_INTERVAL", "1.0")),
                max_polls=int(os.getenv("EXTRACTION_MAX_POLLS", "120")),
            ),
            gemini_llm=GeminiConfig(
                api_key=os.getenv("GEMINI_API_KEY") or None,
                model=os.getenv("GEMINI_MODEL", "gemini-1.5-flash"),
                base_url=os.getenv(
                    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
                ).rstrip("/"),
                temperature=float(os.getenv("GEMINI_TEMPERATURE", "0.2")),
            ),
            sheet=SheetConfig(
                script_url=os.getenv("SHEET_SCRIPT_URL") or None,
                sheet_name=os.getenv("SHEET_NAME", "Sheet1"),
            ),
            smtp=SMTPConfig(
                host=os.getenv("SMTP_HOST") or None,
                port=int(smtp_port),
                secure=smtp_secure,
                user=os.getenv("SMTP_USER") or None,
                password=os.getenv("SMTP_PASSWORD") or None,
                from_name=os.getenv("SMTP_FROM_NAME", "The Hiring Team"),
                from_email=os.getenv("SMTP_FROM_EMAIL") or os.getenv("SMTP_USER") or None,
            ),
            email_api=EmailAPIConfig(
                api_key=os.getenv("EMAIL_API_KEY") or None,
                base_url=os.getenv("EMAIL_API_URL", "https://api.resend.com").rstrip("/"),
                from_email=os.getenv("EMAIL_FROM") or os.getenv("SMTP_FROM_EMAIL") or None,
            ),
            follow_up=FollowUpConfig(
                strategy=os.getenv("FOLLOW_UP_STRATEGY", "provider").lower(),
                hour=int(os.getenv("FOLLOW_UP_HOUR", "10")),
                timezone=os.getenv("FOLLOW_UP_TIMEZONE", "UTC"),
                subject=os.getenv("FOLLOW_UP_SUBJECT", "Your Application is Under Review"),
                scheduler_target_arn=os.getenv("SCHEDULER_TARGET_ARN") or None,
                scheduler_role_arn=os.getenv("SCHEDULER_ROLE_ARN") or None,
                scheduler_group=os.getenv("SCHEDULER_GROUP", "default"),
            ),
            webhook=WebhookConfig(
                url=os.getenv("WEBHOOK_URL") or None,
                status=os.getenv("WEBHOOK_STATUS", "prod"),
                candidate_email=os.getenv("WEBHOOK_CANDIDATE_EMAIL") or None,
            ),
            server=ServerConfig(
                host=os.getenv("SERVER_HOST", "0.0.0.0"),
                port=int(os.getenv("SERVER_PORT", "8000")),
                frontend_url=os.getenv("FRONTEND_URL", ""),
                cors_origins=_env_list("CORS_ORIGINS"),
                submit_rate_limit=os.getenv("SUBMIT_RATE_LIMIT", "10/minute"),
            ),
            MAX_FILE_SIZE=int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024))),
            HTTP_TIMEOUT=float(os.getenv("HTTP_TIMEOUT", "30")),
        )


def get_config() -> Config:
    """
    Get configuration from environment variables.

    Returns:
        Configuration instance
    """
    return Config.from_env()
