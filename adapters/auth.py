"""
Google API authentication
OAuth authorization-code flow and the credential gate in front of tools/call
"""

import asyncio
import functools
import json
import logging
import secrets
from collections import OrderedDict
from typing import Optional, Dict, Any
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from services.config import Settings, get_settings
from services.secrets import SecretManager
from .base import AuthenticationRequiredError

logger = logging.getLogger(__name__)

SCOPES = ['https://www.googleapis.com/auth/calendar']
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

OAUTH_START_PATH = "/oauth/start"
OAUTH_CALLBACK_PATH = "/oauth/callback"

# Consent flows awaiting their callback; the oldest is dropped past this
MAX_PENDING_FLOWS = 32

class GoogleAuthManager:
    """
    Holds the Google credential for the calendar backend

    Unauthenticated until an authorization code is redeemed (or a stored token
    is loaded), Authenticated afterwards. Token refresh is left to the Google
    client libraries; a revoked token shows up as a failed API call.
    """

    def __init__(self, settings: Optional[Settings] = None, secret_manager: Optional[SecretManager] = None):
        self.settings = settings or get_settings()
        self.secret_manager = secret_manager
        if self.secret_manager is None and self.settings.google_oauth_token_secret:
            self.secret_manager = SecretManager(self.settings.google_cloud_project)
        self._credentials: Optional[Credentials] = None
        self._pending_flows: "OrderedDict[str, Flow]" = OrderedDict()

    def is_authenticated(self) -> bool:
        """True when a credential is held that is valid or can be refreshed"""
        creds = self._credentials
        return bool(creds and (creds.valid or creds.refresh_token))

    def authorization_url(self) -> str:
        """The server's own entry point that starts the consent flow"""
        redirect_uri = self.settings.google_redirect_uri
        if redirect_uri and OAUTH_CALLBACK_PATH in redirect_uri:
            return redirect_uri.replace(OAUTH_CALLBACK_PATH, OAUTH_START_PATH)
        return f"http://localhost:{self.settings.server_port}{OAUTH_START_PATH}"

    def get_credentials(self) -> Credentials:
        """
        Get the current Google credentials

        Raises:
            AuthenticationRequiredError: If no usable credential is held
        """
        if not self.is_authenticated():
            raise AuthenticationRequiredError(self.authorization_url())
        return self._credentials

    def set_credentials(self, credentials: Optional[Credentials]):
        self._credentials = credentials

    def _client_config(self) -> Dict[str, Any]:
        return {
            "web": {
                "client_id": self.settings.google_client_id,
                "client_secret": self.settings.google_client_secret,
                "auth_uri": AUTH_URI,
                "token_uri": TOKEN_URI,
                "redirect_uris": [self.settings.google_redirect_uri]
            }
        }

    def _create_flow(self, state: Optional[str] = None) -> Flow:
        flow = Flow.from_client_config(self._client_config(), scopes=SCOPES, state=state)
        flow.redirect_uri = self.settings.google_redirect_uri
        return flow

    def build_consent_url(self) -> str:
        """
        Generate the Google consent URL for the authorization-code flow

        The flow object is kept until its callback arrives so the PKCE
        verifier generated here is available when the code is redeemed.
        """
        state = secrets.token_urlsafe(16)
        flow = self._create_flow(state=state)
        auth_url, _ = flow.authorization_url(
            access_type='offline',
            include_granted_scopes='true',
            prompt='consent'
        )
        self._pending_flows[state] = flow
        while len(self._pending_flows) > MAX_PENDING_FLOWS:
            expired, _ = self._pending_flows.popitem(last=False)
            logger.debug(f"Dropped unanswered OAuth flow {expired[:6]}...")
        return auth_url

    async def complete_oauth_flow(self, authorization_code: str, state: Optional[str] = None) -> Credentials:
        """
        Complete OAuth flow with authorization code

        Args:
            authorization_code: Code received from OAuth callback
            state: State echoed by Google, selects the pending flow

        Returns:
            Valid credentials
        """
        flow = self._pending_flows.pop(state, None) if state else None
        if flow is None:
            flow = self._create_flow(state=state)

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, functools.partial(flow.fetch_token, code=authorization_code))
        self._credentials = flow.credentials
        logger.info("Completed Google OAuth flow")

        await self._save_credentials(self._credentials)
        return self._credentials

    async def load_stored_credentials(self) -> bool:
        """Seed the credential from Secret Manager; returns whether one was found"""
        if not (self.secret_manager and self.settings.google_oauth_token_secret):
            return False

        token_json = await self.secret_manager.get_secret(self.settings.google_oauth_token_secret)
        if not token_json:
            return False

        self._credentials = Credentials.from_authorized_user_info(json.loads(token_json), scopes=SCOPES)
        logger.info("Loaded stored Google OAuth credentials")
        return True

    async def _save_credentials(self, credentials: Credentials):
        """Persist credentials to Secret Manager when configured"""
        if not (self.secret_manager and self.settings.google_oauth_token_secret):
            return

        token_data = {
            'token': credentials.token,
            'refresh_token': credentials.refresh_token,
            'token_uri': credentials.token_uri,
            'client_id': credentials.client_id,
            'client_secret': credentials.client_secret,
            'scopes': credentials.scopes
        }
        await self.secret_manager.store_secret(
            self.settings.google_oauth_token_secret,
            json.dumps(token_data)
        )
        logger.info("Saved Google OAuth credentials")
