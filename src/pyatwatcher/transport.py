"""Mutual-TLS HTTP transport for pyatwatcher."""

from __future__ import annotations

from dataclasses import dataclass, field
import enum
import logging
import ssl
from typing import Any

import aiohttp
from aiohttp import ClientResponse, ClientTimeout
from aiohttp.connector import Connection

from .const import CONNECT_TIMEOUT, REQUEST_TIMEOUT, SUPPORTED_METHODS
from .exceptions import HandshakeError, TransportConnectionError

_LOGGER = logging.getLogger(__name__)


class AuthenticationMethod(str, enum.Enum):
    """Kind of authentication challenge raised during a request."""

    SERVER_TRUST = "server_trust"
    CLIENT_CERTIFICATE = "client_certificate"
    HTTP_BASIC = "http_basic"
    DEFAULT = "default"


class ChallengeDisposition(enum.Enum):
    """How a challenge is answered."""

    USE_CREDENTIAL = "use_credential"
    CANCEL = "cancel"
    PERFORM_DEFAULT_HANDLING = "perform_default_handling"


class CredentialPersistence(enum.Enum):
    """How long a credential stays attached to the transport."""

    NONE = "none"
    FOR_SESSION = "for_session"


@dataclass(frozen=True)
class ClientIdentity:
    """Client certificate and private key presented to the server.

    The files are PEM encoded. Where they live and how they are provisioned
    is up to the caller.
    """

    certfile: str
    keyfile: str | None = None
    password: str | None = field(default=None, repr=False)

    def load_into(self, context: ssl.SSLContext) -> None:
        """Install the identity into an SSL context."""
        context.load_cert_chain(self.certfile, self.keyfile, self.password)


@dataclass(frozen=True)
class AuthChallenge:
    """An authentication challenge received while talking to the server."""

    method: AuthenticationMethod
    server_trust: Any = None


@dataclass(frozen=True)
class Credential:
    """Credential handed back in response to a challenge."""

    trust: Any = None
    identity: ClientIdentity | None = None
    persistence: CredentialPersistence = CredentialPersistence.NONE


@dataclass(frozen=True)
class TransportResponse:
    """Raw result of a request: HTTP status and body bytes."""

    status: int
    body: bytes


class PeerCertificateResponse(ClientResponse):
    """ClientResponse remembering the server certificate of its connection.

    The certificate is captured in start(), before aiohttp may hand the
    connection back to the pool once a short body has been buffered.
    """

    peer_certificate: bytes | None = None

    async def start(self, connection: Connection) -> ClientResponse:
        """Record the peer certificate, then read the response head."""
        transport = connection.transport
        if transport is not None:
            ssl_object = transport.get_extra_info("ssl_object")
            if ssl_object is not None:
                self.peer_certificate = ssl_object.getpeercert(binary_form=True)
        return await super().start(connection)


def create_session(**kwargs: Any) -> aiohttp.ClientSession:
    """Create an aiohttp session usable by MTLSTransport."""
    return aiohttp.ClientSession(response_class=PeerCertificateResponse, **kwargs)


class MTLSChallengeHandler:
    """Answers the authentication challenges of a mutual-TLS handshake.

    Server trust challenges accept whatever trust evaluation they carry and
    cancel when none is available. No pinning or independent chain
    validation is done here; the chain is only as trusted as the platform
    verification that produced the evaluation. Deployments that need more
    must pin certificates on top of this handler.
    """

    def __init__(self, identity: ClientIdentity) -> None:
        """Initialize the handler with the identity to present."""
        self._identity = identity

    @property
    def identity(self) -> ClientIdentity:
        """Return the configured client identity."""
        return self._identity

    def handle(
        self, challenge: AuthChallenge
    ) -> tuple[ChallengeDisposition, Credential | None]:
        """Return the disposition and credential for a challenge."""
        if challenge.method is AuthenticationMethod.SERVER_TRUST:
            if challenge.server_trust is not None:
                _LOGGER.debug("Accepting server trust evaluation")
                return ChallengeDisposition.USE_CREDENTIAL, Credential(
                    trust=challenge.server_trust
                )
            _LOGGER.warning("Server trust challenge without trust object, cancelling")
            return ChallengeDisposition.CANCEL, None

        if challenge.method is AuthenticationMethod.CLIENT_CERTIFICATE:
            _LOGGER.debug("Answering client certificate challenge")
            return ChallengeDisposition.USE_CREDENTIAL, Credential(
                identity=self._identity,
                persistence=CredentialPersistence.FOR_SESSION,
            )

        _LOGGER.debug("Unhandled challenge %s, using default handling", challenge.method)
        return ChallengeDisposition.PERFORM_DEFAULT_HANDLING, None


class MTLSTransport:
    """Performs HTTP requests under a mutual-TLS handshake using aiohttp.

    The client identity is loaded into an SSL context owned by this
    transport and never persisted elsewhere. The server certificate is
    verified by the platform against the default trust store (or ``cafile``)
    and the resulting peer certificate is then submitted to the challenge
    handler as the server trust evaluation.

    Attributes:
        _handler (MTLSChallengeHandler): Decides every trust question.
        _cafile (str | None): Optional CA bundle for server verification.
        _session (aiohttp.ClientSession | None): Session used for requests.
        _managed_session (bool): Whether this instance created the session.

    """

    def __init__(
        self,
        identity: ClientIdentity,
        cafile: str | None = None,
        session: aiohttp.ClientSession | None = None,
        connect_timeout: float | None = CONNECT_TIMEOUT,
        request_timeout: float | None = REQUEST_TIMEOUT,
        handler: MTLSChallengeHandler | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            identity (ClientIdentity): Certificate and key presented when the
                server asks for a client certificate.
            cafile (str | None): CA bundle used to verify the server. The
                platform default trust store is used when omitted.
            session (aiohttp.ClientSession | None): Optional shared session,
                made with create_session(). A session is created (and later
                closed) when omitted.
            connect_timeout (float | None): Seconds allowed for connecting.
            request_timeout (float | None): Seconds allowed for the whole
                request. None means no limit.
            handler (MTLSChallengeHandler | None): Custom challenge handler.

        """
        self._handler = handler or MTLSChallengeHandler(identity)
        self._cafile = cafile
        self._timeout = ClientTimeout(total=request_timeout, connect=connect_timeout)
        self._ssl_context: ssl.SSLContext | None = None
        self._session = session
        self._managed_session = session is None

    def _get_ssl_context(self) -> ssl.SSLContext:
        """Build (once) the SSL context carrying the client identity."""
        if self._ssl_context is not None:
            return self._ssl_context

        context = ssl.create_default_context(cafile=self._cafile)
        disposition, credential = self._handler.handle(
            AuthChallenge(AuthenticationMethod.CLIENT_CERTIFICATE)
        )
        if (
            disposition is ChallengeDisposition.USE_CREDENTIAL
            and credential is not None
            and credential.identity is not None
        ):
            try:
                credential.identity.load_into(context)
            except (ssl.SSLError, OSError) as err:
                _LOGGER.exception("Unable to load client identity")
                err_msg = f"Unable to load client identity: {err}"
                raise HandshakeError(err_msg) from err
        self._ssl_context = context
        return context

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            _LOGGER.debug("Creating new aiohttp ClientSession for MTLSTransport.")
            self._session = create_session()
            self._managed_session = True
        return self._session

    async def close_session(self) -> None:
        """Close the aiohttp session if it's managed by this instance."""
        if self._session and not self._session.closed and self._managed_session:
            await self._session.close()
            self._session = None
            _LOGGER.debug("Managed aiohttp session closed by MTLSTransport.")
        elif self._session and not self._managed_session:
            _LOGGER.debug("Session provided externally, not closing.")

    def _evaluate_server_trust(self, response: ClientResponse) -> None:
        """Submit the peer certificate of the response as a trust challenge."""
        server_trust = getattr(response, "peer_certificate", None)
        disposition, _credential = self._handler.handle(
            AuthChallenge(AuthenticationMethod.SERVER_TRUST, server_trust=server_trust)
        )
        if disposition is not ChallengeDisposition.USE_CREDENTIAL:
            err_msg = f"Server trust rejected for {response.url}"
            raise HandshakeError(err_msg)

    async def fetch(self, url: str, method: str = "GET") -> TransportResponse:
        """Perform one request and return its status and body.

        Raises:
            ValueError: If the method is not supported.
            HandshakeError: If the TLS handshake or trust evaluation fails.
            TransportConnectionError: If the request cannot complete.

        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            err_msg = f"Unsupported method {method}"
            raise ValueError(err_msg)

        ssl_context = self._get_ssl_context()
        session = await self._get_session()

        _LOGGER.debug("Making %s request to %s", method, url)
        try:
            async with session.request(
                method, url, ssl=ssl_context, timeout=self._timeout
            ) as response:
                _LOGGER.debug("Response status code: %s", response.status)
                self._evaluate_server_trust(response)
                body = await response.read()
        except aiohttp.ClientSSLError as ssl_err:
            _LOGGER.error("TLS handshake with %s failed: %s", url, ssl_err)
            err_msg = f"TLS handshake failed: {ssl_err}"
            raise HandshakeError(err_msg) from ssl_err
        except TimeoutError as timeout_err:
            _LOGGER.error("Request timed out: %s %s", method, url)
            err_msg = f"Request timed out: {method} {url}"
            raise TransportConnectionError(err_msg) from timeout_err
        except aiohttp.ClientError as req_err:
            _LOGGER.error("Request error during %s %s: %s", method, url, req_err)
            err_msg = f"Request error: {req_err}"
            raise TransportConnectionError(err_msg) from req_err

        return TransportResponse(status=response.status, body=body)
