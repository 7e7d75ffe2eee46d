"""OAuth client-credentials token acquisition."""

import json
from urllib.parse import urlencode

import structlog

from outbound.cancellation import CancellationToken
from outbound.constants import FORM_CONTENT_TYPE, JSON_CONTENT_TYPE
from outbound.credentials.models import OAuthClientMaterial
from outbound.errors import TokenAcquisitionError
from outbound.redact import decode_body, mask_body, scrub_secrets, truncate
from outbound.tokens.models import TokenGrant
from outbound.transport.executor import HttpExecutor
from outbound.transport.models import HttpMethod, RequestSpec


logger = structlog.get_logger()

# Error bodies from token endpoints are short; keep enough to diagnose.
_ERROR_BODY_MAX_CHARS = 500


class TokenEndpoint:
    """Acquires access tokens with the client-credentials grant."""

    def __init__(self, executor: HttpExecutor, timeout_seconds: float = 15.0) -> None:
        """Initialize the endpoint client.

        Args:
            executor: HTTP executor used for the token request.
            timeout_seconds: Timeout for the token request.
        """
        self._executor = executor
        self._timeout_seconds = timeout_seconds
        self._log = logger.bind(component="token", subcomponent="endpoint")

    def acquire(
        self,
        material: OAuthClientMaterial,
        cancel: CancellationToken | None = None,
    ) -> TokenGrant:
        """Exchange client credentials for an access token.

        Args:
            material: Client id/secret, token URL, and scope.
            cancel: Optional cancellation token.

        Returns:
            TokenGrant with the access token and its lifetime.

        Raises:
            TokenAcquisitionError: On non-2xx status or unexpected response shape.
            TransportError: If the token endpoint could not be reached.
            CallCancelledError: If cancelled while waiting.
        """
        client_secret = material.client_secret.get_secret_value()
        form = {
            "grant_type": "client_credentials",
            "client_id": material.client_id,
            "client_secret": client_secret,
        }
        if material.scope:
            form["scope"] = material.scope

        request = RequestSpec(
            method=HttpMethod.POST,
            url=material.token_url,
            headers={"Content-Type": FORM_CONTENT_TYPE, "Accept": JSON_CONTENT_TYPE},
            body=urlencode(form).encode("utf-8"),
        )
        log = self._log.bind(credential=material.credential_name)

        response = self._executor.send(
            request, timeout=self._timeout_seconds, cancel=cancel
        )

        body_text = decode_body(response.body) or ""
        safe_body = truncate(
            scrub_secrets(mask_body(body_text), [client_secret]),
            _ERROR_BODY_MAX_CHARS,
        )

        if not response.is_success:
            log.warning("token_request_failed", status_code=response.status)
            raise TokenAcquisitionError(
                material.credential_name, response.status, safe_body
            )

        grant = self._parse_grant(body_text)
        if grant is None:
            log.warning("token_response_malformed", status_code=response.status)
            raise TokenAcquisitionError(
                material.credential_name, response.status, safe_body
            )

        log.info("token_acquired", expires_in=grant.expires_in)
        return grant

    @staticmethod
    def _parse_grant(body_text: str) -> TokenGrant | None:
        """Parse ``access_token`` and ``expires_in`` from a JSON body.

        Args:
            body_text: Decoded response body.

        Returns:
            TokenGrant, or None if the body has any other shape.
        """
        try:
            data = json.loads(body_text)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None

        access_token = data.get("access_token")
        expires_in = data.get("expires_in")
        if not isinstance(access_token, str) or not access_token:
            return None
        # bool is an int subclass; reject it explicitly
        if isinstance(expires_in, bool) or not isinstance(expires_in, int):
            return None
        if expires_in < 0:
            return None

        token_type = data.get("token_type")
        return TokenGrant(
            access_token=access_token,
            expires_in=expires_in,
            token_type=token_type if isinstance(token_type, str) else "Bearer",
        )
