"""
Configuration management for the AI playground API.

Loads environment variables from .env file and provides typed access to configuration.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)


class Config:
    """Application-level configuration."""

    # Environment
    ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
    APP_PORT = int(os.getenv("APP_PORT", "8000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    CORS_ALLOW_ORIGINS = [
        origin.strip()
        for origin in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
        if origin.strip()
    ]

    # Inference binding
    INFERENCE_BACKEND = os.getenv("INFERENCE_BACKEND", "workers_ai")
    CLOUDFLARE_ACCOUNT_ID = os.getenv("CLOUDFLARE_ACCOUNT_ID", "")
    CLOUDFLARE_API_TOKEN = os.getenv("CLOUDFLARE_API_TOKEN", "")

    # Rate limiting
    RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    RATE_LIMIT_REDIS_URL = os.getenv("RATE_LIMIT_REDIS_URL", "")
    RATE_LIMIT_DB_PATH = os.getenv("RATE_LIMIT_DB_PATH", "")

    @classmethod
    def validate(cls) -> List[str]:
        """Names of required settings that are missing. Never raises."""
        missing = []
        if cls.INFERENCE_BACKEND == "workers_ai":
            required = ["CLOUDFLARE_ACCOUNT_ID", "CLOUDFLARE_API_TOKEN"]
            missing.extend(key for key in required if not getattr(cls, key))
        if cls.ENVIRONMENT == "production" and cls.RATE_LIMIT_ENABLED and not cls.RATE_LIMIT_DB_PATH:
            missing.append("RATE_LIMIT_DB_PATH")
        return missing


if __name__ == "__main__":
    # Test configuration loading
    print("Configuration loaded:")
    print(f"  Environment: {Config.ENVIRONMENT}")
    print(f"  Port: {Config.APP_PORT}")
    print(f"  Inference backend: {Config.INFERENCE_BACKEND}")
    print(f"  Cloudflare account: {'✓ Set' if Config.CLOUDFLARE_ACCOUNT_ID else '✗ Missing'}")
    print(f"  Rate limiting: {'on' if Config.RATE_LIMIT_ENABLED else 'off'}")
    print(f"  Redis: {'✓ Set' if Config.RATE_LIMIT_REDIS_URL else '- not set'}")
    missing = Config.validate()
    print(f"\n  Validation: {'✓ PASSED' if not missing else '✗ missing ' + ', '.join(missing)}")
