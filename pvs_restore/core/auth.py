"""
PowerVS Restore - Authentication Manager

This module exchanges an IBM Cloud API key for a short-lived IAM bearer
token and keeps it fresh for the length of a run.
"""

import json
import time
from urllib.parse import urlencode

import httplib2

from pvs_restore.core.config import IAM_URL, VERSION
from pvs_restore.core.exceptions import AuthenticationError


class IAMAuthenticator:
    """
    Manages IBM Cloud IAM authentication.

    This class:
    1. Exchanges the API key for a bearer token
    2. Caches the token
    3. Refreshes it shortly before it expires (runs can outlast one token)
    4. Provides clear error messages when authentication fails

    Usage:
        auth = IAMAuthenticator(api_key)
        headers = {'Authorization': f'Bearer {auth.get_token()}'}
    """

    # Refresh this many seconds before the token's expiration
    REFRESH_MARGIN = 300

    GRANT_TYPE = 'urn:ibm:params:oauth:grant-type:apikey'

    def __init__(self, api_key: str, http=None, iam_url: str = IAM_URL,
                 timeout: int = 60, clock=time.time):
        """
        Initialize the authenticator.

        Args:
            api_key: IBM Cloud API key
            http: Optional httplib2.Http (one is created if not given)
            iam_url: IAM token endpoint
            timeout: Socket timeout in seconds
            clock: Time source, replaceable in tests
        """
        self._api_key = api_key
        self._http = http or httplib2.Http(timeout=timeout)
        self._iam_url = iam_url
        self._clock = clock
        self._token = None
        self._expires_at = 0.0

    def get_token(self) -> str:
        """
        Get a valid bearer token, requesting a new one if needed.

        Returns:
            str: Access token

        Raises:
            AuthenticationError: If the exchange fails
        """
        if self._token and self._clock() < self._expires_at - self.REFRESH_MARGIN:
            return self._token

        self._token, self._expires_at = self._request_token()
        return self._token

    def invalidate(self):
        """Drop the cached token (next call re-authenticates)."""
        self._token = None
        self._expires_at = 0.0

    def is_authenticated(self) -> bool:
        """
        Check if the API key can be exchanged for a token.

        Returns:
            bool: True if authenticated, False otherwise
        """
        try:
            self.get_token()
            return True
        except AuthenticationError:
            return False

    def _request_token(self):
        """Call the IAM endpoint. Returns (token, expires_at)."""
        if not self._api_key:
            raise AuthenticationError(
                "No API key configured",
                fix="export IBMCLOUD_API_KEY=<your api key>"
            )

        body = urlencode({'grant_type': self.GRANT_TYPE, 'apikey': self._api_key})
        headers = {
            'Content-Type': 'application/x-www-form-urlencoded',
            'Accept': 'application/json',
            'User-Agent': f'pvs-restore/{VERSION}',
        }

        try:
            response, content = self._http.request(
                self._iam_url, method='POST', body=body, headers=headers
            )
        except (httplib2.HttpLib2Error, OSError) as e:
            raise AuthenticationError(f"IAM endpoint unreachable: {e}")

        if response.status != 200:
            raise AuthenticationError(
                f"IAM token request rejected (HTTP {response.status})",
                fix="Check that IBMCLOUD_API_KEY is valid and not revoked"
            )

        try:
            payload = json.loads(content)
        except (TypeError, ValueError):
            raise AuthenticationError("IAM token response is not valid JSON")

        token = payload.get('access_token') if isinstance(payload, dict) else None
        if not token:
            raise AuthenticationError("IAM token response has no access_token")

        # Prefer the absolute expiration; fall back to expires_in
        expires_at = payload.get('expiration')
        if not expires_at:
            expires_at = self._clock() + float(payload.get('expires_in', 3600))

        return token, float(expires_at)
