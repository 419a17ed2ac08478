"""
Configuration Management

Centralized configuration management using environment variables
with proper validation and type safety.
"""

import os
from typing import Dict, Optional
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


@dataclass
class MongoConfig:
    """MongoDB configuration"""
    uri: str
    db_name: Optional[str] = None  # Database name; if unset, uses 'mockbook'


@dataclass
class SMTPConfig:
    """SMTP email configuration"""
    host: Optional[str] = None
    port: int = 587
    secure: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    from_name: str = "Mock Interviews Team"
    from_email: Optional[str] = None


@dataclass
class SupabaseConfig:
    """Supabase Storage configuration (payment screenshots, UPI QR codes)"""
    url: str = ""
    service_key: str = ""
    bucket: str = "payments"
    max_upload_bytes: int = 5 * 1024 * 1024


@dataclass
class AuthConfig:
    """Bearer token configuration"""
    jwt_secret: str
    jwt_algorithm: str = "HS256"


@dataclass
class ServerConfig:
    """HTTP server configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    frontend_url: str = ""


@dataclass
class BookingConfig:
    """Slot booking and payment workflow settings"""
    admin_email: Optional[str] = None
    reminder_lead_minutes: int = 30
    reminder_sweep_seconds: int = 60
    # Allowed drift (minutes) between a slot's length and its interview type's duration
    duration_tolerance_minutes: int = 1
    # How long a candidate's booking lease lives if the holder dies mid-request
    booking_lease_seconds: int = 30
    default_meeting_link: str = "Meeting link will be shared by your interviewer"
    default_prices: Dict[str, int] = field(
        default_factory=lambda: {"DSA": 1000, "SystemDesign": 1500}
    )
    default_currency: str = "INR"


@dataclass
class Config:
    """Main application configuration"""

    # MongoDB configuration
    mongo: MongoConfig

    # Token verification
    auth: AuthConfig

    # SMTP configuration
    smtp: SMTPConfig = field(default_factory=SMTPConfig)

    # Blob storage
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)

    # Server configuration
    server: ServerConfig = field(default_factory=ServerConfig)

    # Booking workflow
    booking: BookingConfig = field(default_factory=BookingConfig)

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

        Raises:
            ValueError: If required environment variables are missing
        """
        # Validate MongoDB URI
        mongodb_uri = os.getenv("MONGODB_URI")
        if not mongodb_uri:
            raise ValueError("MONGODB_URI environment variable is required")

        jwt_secret = os.getenv("JWT_SECRET_KEY")
        if not jwt_secret or not jwt_secret.strip():
            raise ValueError(
                "JWT_SECRET_KEY must be set in environment. "
                "Generate a secret (e.g. openssl rand -hex 32) and set it in .env"
            )

        # SMTP configuration (optional)
        smtp_port = os.getenv("SMTP_PORT", "587")
        smtp_secure = os.getenv("SMTP_SECURE", "false").lower() == "true" or smtp_port == "465"

        return cls(
            mongo=MongoConfig(
                uri=mongodb_uri,
                db_name=os.getenv("MONGODB_DB_NAME") or None,
            ),
            auth=AuthConfig(
                jwt_secret=jwt_secret,
                jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            ),
            smtp=SMTPConfig(
                host=os.getenv("SMTP_HOST"),
                port=int(smtp_port),
                secure=smtp_secure,
                user=os.getenv("SMTP_USER"),
                password=os.getenv("SMTP_PASSWORD"),
                from_name=os.getenv("SMTP_FROM_NAME", "Mock Interviews Team"),
                from_email=os.getenv("SMTP_FROM_EMAIL") or os.getenv("SMTP_USER"),
            ),
            supabase=SupabaseConfig(
                url=os.getenv("SUPABASE_URL", ""),
                service_key=os.getenv("SUPABASE_SERVICE_KEY", ""),
                bucket=os.getenv("SUPABASE_BUCKET", "payments"),
                max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024))),
            ),
            server=ServerConfig(
                host=os.getenv("SERVER_HOST", "0.0.0.0"),
                port=int(os.getenv("SERVER_PORT", "8000")),
                frontend_url=os.getenv("FRONTEND_URL", ""),
            ),
            booking=BookingConfig(
                admin_email=os.getenv("ADMIN_EMAIL") or None,
                reminder_lead_minutes=int(os.getenv("REMINDER_LEAD_MINUTES", "30")),
                reminder_sweep_seconds=int(os.getenv("REMINDER_SWEEP_SECONDS", "60")),
                duration_tolerance_minutes=int(os.getenv("SLOT_DURATION_TOLERANCE_MINUTES", "1")),
                booking_lease_seconds=int(os.getenv("BOOKING_LEASE_SECONDS", "30")),
                default_meeting_link=os.getenv(
                    "DEFAULT_MEETING_LINK", "Meeting link will be shared by your interviewer"
                ),
                default_prices={
                    "DSA": int(os.getenv("DEFAULT_PRICE_DSA", "1000")),
                    "SystemDesign": int(os.getenv("DEFAULT_PRICE_SYSTEM_DESIGN", "1500")),
                },
                default_currency=os.getenv("DEFAULT_CURRENCY", "INR"),
            ),
        )


_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get configuration from environment variables.

    Returns:
        Configuration instance (built once per process)
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
