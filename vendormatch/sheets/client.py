from __future__ import annotations

import base64
import logging
from typing import Any, Callable

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .cache import Row, TableCache
from .config import DEFAULT_SHEETS_CONFIG, SheetsConfig

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], list[list[Any]]]


class DataSourceError(Exception):
    """A table could not be read from the tabular store."""


def rows_to_records(values: list[list[Any]]) -> list[Row]:
    """
    Convert a raw value grid into row mappings.

    The first row holds the column headers. Short rows are padded with empty
    strings, cells past the last header are dropped, and rows with no
    content at all are skipped.
    """
    if not values:
        return []

    headers = [str(h).strip() for h in values[0]]
    records: list[Row] = []
    for raw in values[1:]:
        cells = ["" if c is None else str(c) for c in raw]
        if not any(c.strip() for c in cells):
            continue
        record = {}
        for i, header in enumerate(headers):
            if header:
                record[header] = cells[i] if i < len(cells) else ""
        records.append(record)
    return records


class GoogleSheetsFetcher:
    """
    Read a sheet's value grid through the Google Sheets v4 API.

    Credentials are built once from the service account settings; every call
    gets its own ``AuthorizedHttp`` since ``httplib2`` connections must not be
    shared between threads.
    """

    def __init__(self, config: SheetsConfig = DEFAULT_SHEETS_CONFIG) -> None:
        self._config = config
        self._credentials: service_account.Credentials | None = None

    def _get_credentials(self) -> service_account.Credentials:
        if self._credentials is not None:
            return self._credentials

        config = self._config
        required = {
            "GOOGLE_SHEET_ID": config.sheet_id,
            "GOOGLE_SERVICE_ACCOUNT_EMAIL": config.service_account_email,
            "GOOGLE_PRIVATE_KEY_BASE64": config.private_key_base64,
        }
        for env_name, value in required.items():
            if not value:
                raise DataSourceError(f"{env_name} is not set.")

        try:
            private_key = base64.b64decode(config.private_key_base64).decode("utf-8")
            self._credentials = service_account.Credentials.from_service_account_info(
                {
                    "client_email": config.service_account_email,
                    "private_key": private_key,
                    "token_uri": config.token_uri,
                },
                scopes=list(config.scopes),
            )
        except (ValueError, GoogleAuthError) as exc:
            raise DataSourceError(
                "Failed to connect to Google Sheets. Check credentials and sheet configuration."
            ) from exc
        return self._credentials

    def __call__(self, table_name: str) -> list[list[Any]]:
        credentials = self._get_credentials()
        # Quote the sheet title so names with spaces resolve as a range.
        sheet_range = "'{}'".format(table_name.replace("'", "''"))
        try:
            http = AuthorizedHttp(
                credentials, http=httplib2.Http(timeout=self._config.http_timeout)
            )
            service = build("sheets", "v4", http=http, cache_discovery=False)
            result = (
                service.spreadsheets()
                .values()
                .get(spreadsheetId=self._config.sheet_id, range=sheet_range)
                .execute()
            )
        except HttpError as exc:
            if exc.resp.status in (400, 404):
                raise DataSourceError(
                    f'Sheet "{table_name}" not found. Please ensure it exists in the Google Sheet document.'
                ) from exc
            raise DataSourceError(f"Could not read data from {table_name}.") from exc
        except (GoogleAuthError, httplib2.HttpLib2Error, OSError) as exc:
            raise DataSourceError(f"Could not read data from {table_name}.") from exc

        return result.get("values", [])


class TabularStoreClient:
    """Cached, read-only access to the named tables of the store."""

    def __init__(
        self,
        fetcher: Fetcher | None = None,
        cache: TableCache | None = None,
        config: SheetsConfig = DEFAULT_SHEETS_CONFIG,
    ) -> None:
        self._fetch = fetcher or GoogleSheetsFetcher(config)
        self.cache = cache or TableCache(ttl=config.cache_ttl)

    def get_table(self, name: str, force_refresh: bool = False) -> list[Row]:
        """
        Return the rows of table ``name``.

        Serves the cached snapshot while it is younger than the cache TTL,
        unless ``force_refresh`` is set. A failed fetch raises
        ``DataSourceError`` and leaves the cache untouched.
        """
        if not force_refresh:
            cached = self.cache.get(name)
            if cached is not None:
                return cached

        try:
            values = self._fetch(name)
        except DataSourceError:
            logger.error("Failed to read sheet %r", name, exc_info=True)
            raise

        rows = rows_to_records(values)
        self.cache.set(name, rows)
        logger.info("Fetched %d rows from sheet %r", len(rows), name)
        return rows

    def refresh(self, *names: str) -> dict[str, int]:
        """Force-refresh each table; returns the row count per table."""
        return {name: len(self.get_table(name, force_refresh=True)) for name in names}

    def cache_stats(self) -> dict:
        return self.cache.stats()
