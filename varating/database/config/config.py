"""
Configuration: Pydantic v2 Settings (env / .env)
=================================================

Purpose
-------
Centralized, strongly-typed configuration for the VA Rating Assistant backend:
- Pydantic v2 `BaseSettings` for environment-driven values
- `pydantic-settings` v2 for `.env` loading and model config

Load Order & Behavior
---------------------
- Values are read from the environment; if not present, `.env` is used.
- Missing required fields (secrets) raise a validation error at import time.
- `extra="ignore"`: unknown env vars are ignored (not an error).

Usage
-----
from varating.database.config.config import settings

bucket = settings.BUCKET_NAME
ttl = settings.UPLOAD_SESSION_TTL_MINUTES

Security
--------
- Never commit secrets or the `.env` file to source control.
- Prefer runtime environment variables in production (Lambda env, Secrets Manager).
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration settings loaded from environment variables
    or a `.env` file. Provides strongly typed access to environment values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Web surface ---
    SITE_URL: str = Field("https://varatingassistant.com", description="Public site URL used in email links.")
    ALLOWED_ORIGINS: List[str] = Field(
        [
            "https://varatingassistant.com",
            "https://earnest-figolla-666ad8.netlify.app",
            "http://localhost:5173",
        ],
        description="Origins allowed by CORS. The first one is the canonical site.",
    )

    # --- Database ---
    DB_URL: Optional[str] = Field(None, description="Full SQLAlchemy URL. Overrides the DB_* parts when set.")
    DB_DRIVER_NAME: str = Field("postgresql+psycopg2", description="SQLAlchemy driver name.")
    DB_USERNAME: Optional[str] = Field(None, description="Database username credential.")
    DB_PASSWORD: Optional[str] = Field(None, description="Database password credential.")
    DB_HOST: Optional[str] = Field(None, description="Hostname of the Supabase Postgres server.")
    DB_PORT: Optional[int] = Field(None, description="Port of the Postgres server.")
    DB_DATABASE_NAME: Optional[str] = Field(None, description="Name of the application database.")
    DB_CREATE_TABLES: bool = Field(False, description="Create missing tables on startup.")

    # --- Supabase Auth ---
    SUPABASE_URL: str = Field(..., description="Supabase project URL (used for the Auth admin API).")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Service-role key for admin calls and cron endpoints.")
    SUPABASE_JWT_SECRET: str = Field(..., description="Secret used to verify and sign Supabase access tokens.")
    ALGORITHM: str = Field("HS256", description="JWT signing algorithm.")
    JWT_AUDIENCE: str = Field("authenticated", description="Expected `aud` claim of user tokens.")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(60, description="Lifetime of tokens issued by this service.")

    # --- Stripe ---
    STRIPE_SECRET_KEY: str = Field(..., description="Stripe secret API key.")
    STRIPE_WEBHOOK_SECRET: str = Field(..., description="Signing secret of the Stripe webhook endpoint.")
    STRIPE_SUBSCRIPTION_PRICE_ID: Optional[str] = Field(None, description="Legacy subscription price.")
    STRIPE_SINGLE_UPLOAD_PRICE_ID: Optional[str] = Field(None, description="Legacy single-upload price.")

    # --- Tokens ---
    LOW_BALANCE_THRESHOLD: int = Field(10, description="Balance under which a consumer is flagged as low.")

    # --- AWS ---
    AWS_ACCESS_KEY: Optional[str] = Field(None, description="AWS access key ID (omit to use the execution role).")
    AWS_SECRET_KEY: Optional[str] = Field(None, description="AWS secret access key.")
    REGION: str = Field(..., description="AWS region name (e.g., `us-east-2`).")
    BUCKET_NAME: str = Field(..., description="S3 bucket holding user documents.")
    PRESIGNED_URL_EXPIRES: int = Field(300, description="Lifetime in seconds of presigned S3 URLs.")
    TEXTRACT_SNS_TOPIC_ARN: Optional[str] = Field(None, description="SNS topic notified when Textract finishes.")
    TEXTRACT_SNS_ROLE_ARN: Optional[str] = Field(None, description="Role Textract assumes to publish to SNS.")
    RAG_WORK_QUEUE_URL: Optional[str] = Field(None, description="SQS queue receiving condition-extraction work.")

    # --- Bedrock ---
    BEDROCK_REGION: str = Field("us-east-2", description="Region of the Bedrock agent and models.")
    BEDROCK_AGENT_ID: Optional[str] = Field(None, description="Bedrock agent identifier.")
    BEDROCK_AGENT_ALIAS_ID: Optional[str] = Field(None, description="Bedrock agent alias identifier.")
    BEDROCK_MODEL_ID: str = Field(
        "us.anthropic.claude-3-5-sonnet-20241022-v2:0",
        description="Model (or inference profile) used for rating recommendations.",
    )
    CHUNK_BATCH_SIZE: int = Field(3, description="Document chunks sent per agent call.")

    # --- RAG agent relay ---
    RAG_AGENT_URL: Optional[str] = Field(None, description="Base URL of the RAG agent HTTP API.")
    RAG_AGENT_API_KEY: Optional[str] = Field(None, description="Bearer key accepted by the RAG agent API.")

    # --- eCFR ---
    ECFR_BASE_URL: str = Field("https://www.ecfr.gov/api/versioner/v1", description="eCFR versioner API root.")
    ECFR_DATE: str = Field("2024-01-01", description="Snapshot date of title 38 queried.")
    HTTP_TIMEOUT: float = Field(10.0, description="Timeout in seconds for outbound HTTP calls.")

    # --- Email ---
    RESEND_API_URL: str = Field("https://api.resend.com/emails", description="Resend send endpoint.")
    RESEND_API_KEY: Optional[str] = Field(None, description="Resend API key used for token alerts.")
    PICA_API_URL: str = Field("https://api.picaos.com/v1/passthrough/email", description="Pica email passthrough.")
    PICA_ACTION_ID: str = Field(
        "conn_mod_def::GC4q4JE4I28::x8Elxo0VRMK1X-uH1C3NeA",
        description="Pica action identifier of the Resend send-email action.",
    )
    PICA_SECRET_KEY: Optional[str] = Field(None, description="Pica secret key.")
    PICA_RESEND_CONNECTION_KEY: Optional[str] = Field(None, description="Pica Resend connection key.")
    ALERT_SENDER: str = Field("VA Rating Assistant <noreply@varating.ai>", description="Sender of token alerts.")
    NOTIFICATION_SENDER: str = Field(
        "VA Rating Assistant <noreply@marketing.varatingassistant.com>",
        description="Sender of contact and notification emails.",
    )
    CONTACT_EMAIL: str = Field(
        "support@marketing.varatingassistant.com", description="Mailbox receiving contact-form messages."
    )

    # --- VA APIs ---
    VA_FORMS_API_URL: str = Field("https://sandbox-api.va.gov/services/va_forms/v0", description="VA Forms API.")
    VA_FORMS_API_KEY: Optional[str] = Field(None, description="API key for the VA Forms API.")
    VA_FACILITIES_API_URL: str = Field(
        "https://sandbox-api.va.gov/services/va_facilities/v1", description="VA Facilities API."
    )
    VA_FACILITIES_API_KEY: Optional[str] = Field(None, description="API key for the VA Facilities API.")
    VA_RATES_FILE: Optional[str] = Field(None, description="Path to the VA compensation rate table (JSON).")

    # --- Upload sessions ---
    UPLOAD_SESSION_TTL_MINUTES: int = Field(30, description="Lifetime of an upload session.")


# Singleton instance of Settings, ready to be imported across the app
settings = Settings()
"""Defines a Settings object that contains the contents of the .env file"""
