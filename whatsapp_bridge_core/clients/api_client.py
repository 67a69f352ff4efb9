"""
Resilient client for the WhatsApp API.

Each call mints a fresh credential, then runs a bounded retry loop in which
only connection failures and timeouts are retried, with a fixed pause
between attempts. Responses are classified uniformly:

- status >= 400 -> ApiError carrying the upstream message
- status < 400 with a JSON body -> the decoded payload
- status < 400 with anything else -> ResponseParseError

A timeout on a non-idempotent request the server already processed will be
repeated on retry; there is no exactly-once guarantee.
"""

import mimetypes
import os
import time
from typing import Any, Callable, Dict, Optional, Union

import requests
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from ..config import AppConfig, get_config
from ..constants import QUERY_PAYLOAD_METHODS, HttpMethod, Limits, Messages
from ..exceptions import (
    ApiError,
    AuthenticationError,
    BaseError,
    ExternalServiceError,
    ResponseParseError,
    TransientNetworkError,
    UploadFileNotFoundError,
    correlation_scope,
    validation_failed,
)
from ..schemas.identity_schema import CallerIdentity
from ..schemas.request_schema import RequestAttempt
from ..schemas.usage_schema import UsageEvent
from ..services.usage_tracking_service import NoOpUsageSink, UsageSink
from ..utils.logger import get_logger

IdentityProvider = Callable[[], Optional[CallerIdentity]]

_RETRYABLE_ERRORS = (requests.ConnectionError, requests.Timeout)


class WhatsAppApiClient:
    """
    Authenticated HTTP client for the WhatsApp API server.

    Args:
        config: Application config; api.* and features.debug_mode are used
        token_issuer: Mints the bearer credential for every call
        identity_provider: Returns the user the call is made for
        http_session: requests.Session (or compatible) used for transport
        usage_sink: Receives a UsageEvent for every response received (no-op by default)
        sleep: Called with the retry delay between attempts
    """

    def __init__(
        self,
        token_issuer,
        identity_provider: IdentityProvider,
        config: Optional[AppConfig] = None,
        http_session: Optional[requests.Session] = None,
        usage_sink: Optional[UsageSink] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or get_config()
        self.token_issuer = token_issuer
        self.identity_provider = identity_provider
        self.http_session = http_session or requests.Session()
        self.usage_sink = usage_sink or NoOpUsageSink()
        self.sleep = sleep
        self.logger = get_logger()

    # ==================== PUBLIC API ====================

    def get_api_url(self, endpoint: str = "") -> str:
        return self.config.api.base_url.rstrip("/") + "/" + endpoint.lstrip("/")

    def send(
        self, method: Union[HttpMethod, str], endpoint: str, payload: Optional[Any] = None
    ) -> Any:
        """
        Perform an authenticated JSON request.

        Raises:
            AuthenticationError: No credential could be minted
            TransientNetworkError: Connection failures outlasted every retry
            ApiError: The server answered with status >= 400
            ResponseParseError: The server answered < 400 with a non-JSON body
            ExternalServiceError: Any other transport failure
        """
        http_method = self._coerce_method(method)

        with correlation_scope():
            token = self._mint_token()

            attempt = RequestAttempt(
                method=http_method,
                endpoint=endpoint,
                url=self.get_api_url(endpoint),
                timeout=self.config.api.connection_timeout,
                payload=payload,
                max_attempts=self.config.api.max_retries + 1,
            )

            request_kwargs: Dict[str, Any] = {
                "headers": {
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                }
            }
            if http_method in QUERY_PAYLOAD_METHODS:
                if payload is not None:
                    request_kwargs["params"] = payload
            else:
                # Body methods always carry a JSON document
                request_kwargs["json"] = payload if payload is not None else {}

            response = self._execute(attempt, request_kwargs)
            return self._handle_response(attempt, response, Messages.API_REQUEST_FAILED)

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.send(HttpMethod.GET, endpoint, params)

    def post(self, endpoint: str, data: Optional[Any] = None) -> Any:
        return self.send(HttpMethod.POST, endpoint, data)

    def put(self, endpoint: str, data: Optional[Any] = None) -> Any:
        return self.send(HttpMethod.PUT, endpoint, data)

    def delete(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.send(HttpMethod.DELETE, endpoint, params)

    def send_multipart(
        self, endpoint: str, file_path: str, filename: Optional[str] = None
    ) -> Any:
        """
        Upload a file as the single "file" part of a multipart POST.

        The file is checked before any credential or network activity. The
        per-attempt timeout is doubled.
        """
        if not file_path or not os.path.isfile(file_path):
            raise UploadFileNotFoundError(
                f"{Messages.FILE_NOT_FOUND}: {file_path}", file_path=file_path
            )

        with correlation_scope():
            token = self._mint_token()

            filename = filename or os.path.basename(file_path)
            content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
            with open(file_path, "rb") as fh:
                content = fh.read()

            attempt = RequestAttempt(
                method=HttpMethod.POST,
                endpoint=endpoint,
                url=self.get_api_url(endpoint),
                timeout=self.config.api.connection_timeout * Limits.UPLOAD_TIMEOUT_MULTIPLIER,
                payload={"filename": filename, "content_type": content_type},
                max_attempts=self.config.api.max_retries + 1,
                is_upload=True,
            )

            request_kwargs = {
                "headers": {"Authorization": f"Bearer {token}"},
                "files": {"file": (filename, content, content_type)},
            }

            response = self._execute(attempt, request_kwargs)
            return self._handle_response(attempt, response, Messages.API_UPLOAD_FAILED)

    def close(self) -> None:
        """Flush buffered usage events. The client stays usable afterwards."""
        self.usage_sink.flush()

    # ==================== INTERNALS ====================

    @staticmethod
    def _coerce_method(method: Union[HttpMethod, str]) -> HttpMethod:
        if isinstance(method, HttpMethod):
            return method
        try:
            return HttpMethod(str(method).upper())
        except ValueError as e:
            raise validation_failed("method", method, "unsupported HTTP method", cause=e)

    def _mint_token(self) -> str:
        try:
            identity = self.identity_provider() if self.identity_provider else None
            return self.token_issuer.issue_credential(identity)
        except BaseError as e:
            raise AuthenticationError(Messages.TOKEN_GENERATION_FAILED, cause=e)

    def _debug(self, msg: str, **extra: Any) -> None:
        if self.config.features.debug_mode:
            self.logger.info(msg, extra=extra)

    def _request_once(
        self, attempt: RequestAttempt, request_kwargs: Dict[str, Any]
    ) -> requests.Response:
        attempt.next_attempt()
        self._debug(
            f"WhatsApp API request: {attempt.method.value} {attempt.url}",
            attempt=attempt.attempt,
            max_attempts=attempt.max_attempts,
            payload=attempt.payload,
        )

        try:
            return self.http_session.request(
                attempt.method.value, attempt.url, timeout=attempt.timeout, **request_kwargs
            )
        except _RETRYABLE_ERRORS:
            raise
        except requests.RequestException as e:
            raise ExternalServiceError(
                f"WhatsApp API request failed: {e}",
                service_name="whatsapp_api",
                cause=e,
                endpoint=attempt.endpoint,
            )

    def _execute(self, attempt: RequestAttempt, request_kwargs: Dict[str, Any]) -> requests.Response:
        """Run the attempts and return the first response received."""

        def log_retry(retry_state: RetryCallState) -> None:
            self._debug(
                f"WhatsApp API connection error, retrying: {retry_state.outcome.exception()}",
                attempt=retry_state.attempt_number,
                endpoint=attempt.endpoint,
            )

        retryer = Retrying(
            stop=stop_after_attempt(attempt.max_attempts),
            wait=wait_fixed(self.config.api.retry_delay_seconds),
            retry=retry_if_exception_type(_RETRYABLE_ERRORS),
            sleep=self.sleep,
            before_sleep=log_retry,
        )

        try:
            return retryer(self._request_once, attempt, request_kwargs)
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            cause = e.last_attempt.exception()
            raise TransientNetworkError(
                f"Connection to WhatsApp API failed after {attempts} attempts: {cause}",
                attempts=attempts,
                cause=cause,
                endpoint=attempt.endpoint,
            )

    def _handle_response(
        self, attempt: RequestAttempt, response: requests.Response, fallback_message: str
    ) -> Any:
        status = response.status_code
        self._debug(
            f"WhatsApp API response: {status}",
            endpoint=attempt.endpoint,
            body=response.text,
        )
        self._track_usage(attempt, status)

        if status >= 400:
            raise ApiError(
                self._error_message(response, fallback_message),
                status_code=status,
                endpoint=attempt.endpoint,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseError(
                Messages.PARSE_FAILED, cause=e, endpoint=attempt.endpoint, http_status=status
            )

    @staticmethod
    def _error_message(response: requests.Response, fallback: str) -> str:
        try:
            body = response.json()
        except ValueError:
            return fallback
        if isinstance(body, dict):
            for key in ("message", "error"):
                if body.get(key):
                    return str(body[key])
        return fallback

    def _track_usage(self, attempt: RequestAttempt, status: int) -> None:
        try:
            self.usage_sink.record(
                UsageEvent.for_response(attempt.endpoint, attempt.method.value, status)
            )
        except Exception as e:
            self.logger.warning(
                "Failed to record API usage",
                extra={"endpoint": attempt.endpoint, "error_message": str(e)},
            )
