from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class SheetsConfig:
    """
    Configuration for the Google Sheets tabular store.
    """

    sheet_id: str = os.getenv("GOOGLE_SHEET_ID", "")
    service_account_email: str = os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL", "")
    private_key_base64: str = os.getenv("GOOGLE_PRIVATE_KEY_BASE64", "")
    token_uri: str = "https://oauth2.googleapis.com/token"
    scopes: tuple[str, ...] = field(
        default=("https://www.googleapis.com/auth/spreadsheets.readonly",)
    )
    cache_ttl: float = float(os.getenv("SHEETS_CACHE_TTL", "300"))  # 5 minutes
    http_timeout: float = 30.0
    vendors_table: str = "Vendors"
    ratings_table: str = "Ratings"


DEFAULT_SHEETS_CONFIG = SheetsConfig()
