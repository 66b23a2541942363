"""HTTP client for the relay's session API."""

import time
import uuid
from typing import Optional

import httpx

from common.logging_config import get_logger
from cli.config import Config
from cli.constants import GREEN, RESET

logger = get_logger(__name__)


class RelayClient:
    """HTTP client for the relay session API with retry logic and error handling."""

    def __init__(self, config: Config, transport: Optional[httpx.BaseTransport] = None):
        """
        Initialize relay client.

        Args:
            config: Configuration instance
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout(),
            transport=transport,
        )
        self.request_id = None
        logger.info(f"Initialized RelayClient [base_url={config.get_base_url()}]")

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        headers = kwargs.setdefault('headers', {})
        headers['X-Request-ID'] = self.request_id

        logger.debug(f"Making request: {method} {endpoint} [request_id={self.request_id}]")

        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)
            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s "
                        f"[request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} "
                    f"[request_id={self.request_id}]"
                )
                break

            logger.debug(
                f"Response received: {method} {endpoint} status={response.status_code} "
                f"[request_id={self.request_id}]"
            )

            if response.status_code >= 500 and attempt < max_retries:
                delay = backoff ** attempt
                logger.warning(
                    f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                    f"{method} {endpoint} status={response.status_code}, retrying in {delay}s "
                    f"[request_id={self.request_id}]"
                )
                time.sleep(delay)
                continue

            return response

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Relay may be overloaded.")
        if last_exception is not None:
            raise ConnectionError("Cannot connect to relay server. Is it running?")
        raise ConnectionError("Max retries exceeded")

    def _format_error(self, response: httpx.Response) -> str:
        """
        Map HTTP errors to user-friendly messages.

        Args:
            response: HTTP response object

        Returns:
            User-friendly error message
        """
        try:
            error_data = response.json()
            detail = error_data.get('detail', 'Unknown error')
            code = error_data.get('code', 'UNKNOWN')
        except ValueError:
            detail = response.text if response.text else 'Unknown error'
            code = 'UNKNOWN'

        error_messages = {
            'SESSION_NOT_FOUND': 'Session not found or expired.',
            'SESSION_STORE_UNAVAILABLE': 'Session store is currently unavailable. Please try again later.',
        }

        if code in error_messages:
            return error_messages[code]

        status_messages = {
            400: 'Bad request',
            404: 'Not found',
            422: 'Invalid request',
            500: 'Server error',
            503: 'Service unavailable',
        }

        message = status_messages.get(response.status_code, detail)
        return f"{message} (Code: {code})" if code != 'UNKNOWN' else message

    def create_session(self, password: Optional[str] = None) -> str:
        """
        Create a session on the relay.

        Args:
            password: Optional session password

        Returns:
            Success message with the new session id
        """
        logger.info("Creating session")
        try:
            response = self._request_with_retry(
                'POST',
                '/session',
                json={'password': password}
            )

            if response.status_code == 201:
                data = response.json()
                session_id = data['sessionId']
                self.config.add_recent_session(session_id)
                logger.info(f"Session created [session_id={session_id}]")

                lines = [f"Session created: {GREEN}{session_id}{RESET}"]
                lines.append("Password protected." if data.get('password') else "No password set.")
                return "\n".join(lines)

            logger.warning(f"Session creation failed status={response.status_code}")
            return f"Session creation failed: {self._format_error(response)}"

        except ConnectionError as e:
            logger.error(f"Connection error creating session: {e}")
            return f"Error: {e}"

    def show_session(self, session_id: str) -> str:
        """
        Look up a session on the relay.

        Args:
            session_id: Session identifier

        Returns:
            Session details or error message
        """
        logger.info(f"Looking up session {session_id}")
        try:
            response = self._request_with_retry('GET', f'/session/{session_id}')

            if response.status_code == 200:
                data = response.json()
                password = data.get('password')
                return (
                    f"Session: {data['sessionId']}\n"
                    f"Password: {password if password else '(none)'}"
                )

            return f"Lookup failed: {self._format_error(response)}"

        except ConnectionError as e:
            logger.error(f"Connection error looking up session: {e}")
            return f"Error: {e}"

    def health(self) -> str:
        """
        Check relay readiness.

        Returns:
            Status summary
        """
        try:
            response = self._request_with_retry('GET', '/ready', max_retries=0)
            data = response.json()
            if response.status_code == 200:
                return (
                    f"Relay is {GREEN}ready{RESET} at {self.config.get_base_url()}\n"
                    f"Sessions with members: {data.get('active_sessions', 0)}, "
                    f"connections: {data.get('connections', 0)}"
                )
            return f"Relay not ready: session store {data.get('session_store', 'unknown')}"

        except ConnectionError as e:
            return f"Error: {e}"
        except ValueError:
            return f"Relay returned an unexpected response ({response.status_code})"

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()
