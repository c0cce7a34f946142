from __future__ import annotations

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import httplib2
from google.auth.credentials import Credentials
from google.oauth2 import service_account
from google.oauth2.credentials import Credentials as UserCredentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from content_decay_agent.errors import GSCFetchError
from content_decay_agent.models import DateWindow, MetricRow


DEFAULT_PAGE_SIZE = 25000


@dataclass(frozen=True)
class GSCSite:
    site_url: str
    permission_level: str


class GSCClient:
    """Search Analytics reader that pages through every row of a window."""

    SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]
    HTTP_TIMEOUT_SEC = 30
    API_RETRIES = 3

    def __init__(
        self,
        site_url: str,
        credentials_path: str = "",
        oauth_client_secret_path: str = "",
        oauth_refresh_token: str = "",
        oauth_token_uri: str = "https://oauth2.googleapis.com/token",
        page_size: int = DEFAULT_PAGE_SIZE,
        data_state: str = "final",
    ) -> None:
        self.site_url = site_url
        self.credentials_path = credentials_path
        self.oauth_client_secret_path = oauth_client_secret_path
        self.oauth_refresh_token = oauth_refresh_token
        self.oauth_token_uri = oauth_token_uri
        self.page_size = max(1, int(page_size))
        self.data_state = data_state
        self._credentials: Credentials | None = None
        # httplib2 transports must not be shared between threads.
        self._local = threading.local()

    def _build_service(self):
        service = getattr(self._local, "service", None)
        if service is not None:
            return service

        if self._credentials is None:
            self._credentials = self._build_credentials()
        http = AuthorizedHttp(
            self._credentials,
            http=httplib2.Http(timeout=self.HTTP_TIMEOUT_SEC),
        )
        service = build("searchconsole", "v1", http=http, cache_discovery=False)
        self._local.service = service
        return service

    def _build_credentials(self) -> Credentials:
        if self.credentials_path:
            payload = self._load_json(self.credentials_path)
            if payload.get("type") == "service_account":
                return service_account.Credentials.from_service_account_file(
                    self.credentials_path,
                    scopes=self.SCOPES,
                )
            return self._oauth_credentials_from_payload(payload)

        if self.oauth_client_secret_path:
            payload = self._load_json(self.oauth_client_secret_path)
            return self._oauth_credentials_from_payload(payload)

        raise RuntimeError(
            "Missing GSC credentials. Set GSC_CREDENTIALS_PATH (service account or oauth JSON) "
            "or set GSC_OAUTH_CLIENT_SECRET_PATH + GSC_OAUTH_REFRESH_TOKEN."
        )

    def _oauth_credentials_from_payload(self, payload: dict) -> UserCredentials:
        # OAuth JSON can be either {"installed": {...}} or {"web": {...}}.
        client_section = payload.get("installed") or payload.get("web") or payload
        client_id = client_section.get("client_id")
        client_secret = client_section.get("client_secret")
        token_uri = client_section.get("token_uri") or self.oauth_token_uri

        if not (client_id and client_secret):
            raise RuntimeError("OAuth client JSON is missing client_id/client_secret.")
        if not self.oauth_refresh_token:
            raise RuntimeError("Missing GSC_OAUTH_REFRESH_TOKEN for OAuth credentials.")

        return UserCredentials(
            token=None,
            refresh_token=self.oauth_refresh_token,
            token_uri=token_uri,
            client_id=client_id,
            client_secret=client_secret,
            scopes=self.SCOPES,
        )

    @staticmethod
    def _load_json(path_value: str) -> dict:
        path = Path(path_value)
        if not path.exists():
            raise RuntimeError(f"GSC credentials file not found: {path_value}")
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RuntimeError(f"Invalid JSON in credentials file: {path_value}") from exc

    def _query_page(self, body: dict) -> list[dict]:
        service = self._build_service()
        try:
            response = (
                service.searchanalytics()
                .query(siteUrl=self.site_url, body=body)
                .execute(num_retries=self.API_RETRIES)
            )
        except HttpError as exc:
            raise GSCFetchError(
                f"GSC API error for {body['startDate']}..{body['endDate']}: {exc}"
            ) from exc
        except (OSError, httplib2.HttpLib2Error) as exc:
            raise GSCFetchError(f"GSC transport error: {exc}") from exc
        return response.get("rows") or []

    def fetch_rows(
        self,
        window: DateWindow,
        dimensions: Sequence[str] = ("page",),
    ) -> list[MetricRow]:
        """Every row of ``window``, paging by ``startRow`` until a short page."""
        rows: list[MetricRow] = []
        start_row = 0
        while True:
            body = {
                "startDate": window.start.isoformat(),
                "endDate": window.end.isoformat(),
                "dimensions": list(dimensions),
                "rowLimit": self.page_size,
                "startRow": start_row,
                "dataState": self.data_state,
            }
            page = self._query_page(body)
            for row in page:
                keys = row.get("keys") or []
                rows.append(
                    MetricRow(
                        key=" | ".join(keys) if keys else "TOTAL",
                        clicks=float(row.get("clicks", 0.0) or 0.0),
                        impressions=float(row.get("impressions", 0.0) or 0.0),
                        ctr=float(row.get("ctr", 0.0) or 0.0),
                        position=float(row.get("position", 0.0) or 0.0),
                    )
                )
            if len(page) < self.page_size:
                break
            start_row += self.page_size
        return rows

    def list_sites(self) -> list[GSCSite]:
        service = self._build_service()
        try:
            response = service.sites().list().execute(num_retries=self.API_RETRIES)
        except HttpError as exc:
            raise GSCFetchError(f"GSC sites listing failed: {exc}") from exc
        return [
            GSCSite(
                site_url=str(entry.get("siteUrl") or ""),
                permission_level=str(entry.get("permissionLevel") or "siteUnverifiedUser"),
            )
            for entry in response.get("siteEntry", [])
        ]
