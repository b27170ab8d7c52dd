"""
Microsoft Graph client for OneDrive
Handles the OAuth code flow and folder listing
"""
from typing import Optional, Dict, List, Any
from urllib.parse import urlencode, quote

import httpx

from ..config import settings


SCOPES = "Files.Read Files.Read.All Sites.Read.All offline_access"
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


class OneDriveError(Exception):
    """Raised when Microsoft login or Graph answers with an error."""


class OneDriveClient:
    """Client for the Microsoft identity platform and Graph drive API"""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        tenant_id: Optional[str] = None,
        http: Optional[httpx.Client] = None,
    ):
        self.client_id = client_id or settings.microsoft_client_id
        self.client_secret = client_secret or settings.microsoft_client_secret
        self.tenant_id = tenant_id or settings.microsoft_tenant_id or "common"
        self.login_base_url = f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0"
        self._http = http

        if not self.client_id:
            raise OneDriveError("MICROSOFT_CLIENT_ID is not configured")

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            if self._http is not None:
                return self._http.request(method, url, **kwargs)
            with httpx.Client(timeout=30.0) as client:
                return client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise OneDriveError(f"Microsoft request failed: {e}") from e

    def authorize_url(self, redirect_uri: str, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "response_type": "code",
                "redirect_uri": redirect_uri,
                "scope": SCOPES,
                "state": state,
            },
            quote_via=quote,
        )
        return f"{self.login_base_url}/authorize?{query}"

    def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        if not self.client_secret:
            raise OneDriveError("MICROSOFT_CLIENT_SECRET is not configured")
        data = {"client_id": self.client_id, "client_secret": self.client_secret, **form}
        response = self._send("POST", f"{self.login_base_url}/token", data=data)
        if response.status_code >= 400:
            raise OneDriveError(f"Token exchange failed: {response.text}")
        return response.json()

    def exchange_code(self, code: str, redirect_uri: str) -> Dict[str, Any]:
        return self._token_request(
            {"code": code, "redirect_uri": redirect_uri, "grant_type": "authorization_code"}
        )

    def refresh(self, refresh_token: str) -> Dict[str, Any]:
        return self._token_request(
            {"refresh_token": refresh_token, "grant_type": "refresh_token", "scope": SCOPES}
        )

    def list_folder(self, access_token: str, folder_path: str) -> List[Dict[str, Any]]:
        """Children of a drive folder addressed by path, e.g. /Documents/BusinessDocs."""
        url = f"{GRAPH_BASE_URL}/me/drive/root:{quote(folder_path)}:/children"
        headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
        response = self._send("GET", url, headers=headers)
        if response.status_code >= 400:
            raise OneDriveError(f"Failed to fetch files: {response.text}")
        return response.json().get("value") or []
