"""Client configuration"""
import logging
import os
import threading
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Mapping
from typing import Optional
from typing import Tuple

from webhdfs.exceptions import HdfsValidationError

DEFAULT_PORT = 50070
DEFAULT_KNOWN_ERRORS = (
    "LeaseExpiredException",
    "StandbyException",
    "RetriableException",
)
VERIFY_MODES = ("none", "peer")

_logger = logging.getLogger(__name__)


class ClientConfig(object):
    """Everything a :py:class:`~webhdfs.client.WebHdfsClient` needs to know about its cluster.

    :param host: NameNode (or HttpFS gateway) hostname. This is the only field rediscovery
        changes at runtime, so it is read and written under a lock.
    :param port: NameNode HTTP port. Defaults to 50070; Hadoop 3 moved it to 9870.
    :param username: Sent as ``user.name``. Defaults to the ``HADOOP_USER_NAME`` environment
        variable, or nothing at all if unset.
    :param doas: User to impersonate, sent as ``doas``.
    :param proxy_address: HTTP proxy host.
    :param proxy_port: HTTP proxy port.
    :param proxy_user: HTTP proxy login.
    :param proxy_password: HTTP proxy password.
    :param ssl: Talk HTTPS instead of HTTP.
    :param ssl_ca_file: CA bundle used to verify the server.
    :param ssl_cert: Client certificate file.
    :param ssl_key: Client private key file.
    :param ssl_verify_mode: ``peer`` (verify the server) or ``none``.
    :param kerberos: Authenticate with SPNEGO.
    :param kerberos_keytab: Keytab to authenticate with. Defaults to ``KEYTAB_PATH``.
    :param http_headers: Static headers sent with every request.
    :param httpfs_mode: The server is an HttpFS gateway which handles data operations itself.
    :param gateway_path: Path prefix of a gateway (e.g. Knox) in front of ``/webhdfs/v1``.
    :param basic_auth: ``(user, password)`` for the gateway.
    :param retry_known_errors: Enable the retry/failover engine.
    :param retry_times: Maximum number of retries of a single call.
    :param retry_interval: Seconds to wait before retrying a known transient remote exception.
    :param block_length_retry_interval: Seconds to wait after a "Cannot obtain block length".
    :param server_error_retry_interval: Seconds to wait after a server or transport failure.
    :param known_errors: Names of remote exceptions that warrant failover and retry.
    :param open_timeout: Connect timeout in seconds.
    :param read_timeout: Read timeout in seconds.
    :param jmx_host: Where to ask for the active NameNode, e.g. ``http://nn-status:50070``.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = DEFAULT_PORT,
        username: Optional[str] = None,
        doas: Optional[str] = None,
        proxy_address: Optional[str] = None,
        proxy_port: Optional[int] = None,
        proxy_user: Optional[str] = None,
        proxy_password: Optional[str] = None,
        ssl: bool = False,
        ssl_ca_file: Optional[str] = None,
        ssl_cert: Optional[str] = None,
        ssl_key: Optional[str] = None,
        ssl_verify_mode: str = "peer",
        kerberos: bool = False,
        kerberos_keytab: Optional[str] = None,
        http_headers: Optional[Mapping[str, str]] = None,
        httpfs_mode: bool = False,
        gateway_path: Optional[str] = None,
        basic_auth: Optional[Tuple[str, str]] = None,
        retry_known_errors: bool = True,
        retry_times: int = 1,
        retry_interval: float = 10,
        block_length_retry_interval: float = 5,
        server_error_retry_interval: float = 15,
        known_errors: Iterable[str] = DEFAULT_KNOWN_ERRORS,
        open_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        jmx_host: Optional[str] = None,
    ) -> None:
        if not host:
            raise HdfsValidationError("No host given")
        if retry_times < 0:
            raise HdfsValidationError("Invalid retry_times: {}".format(retry_times))
        for name, interval in (
            ("retry_interval", retry_interval),
            ("block_length_retry_interval", block_length_retry_interval),
            ("server_error_retry_interval", server_error_retry_interval),
        ):
            if interval < 0:
                raise HdfsValidationError("Invalid {}: {}".format(name, interval))
        if ssl_verify_mode not in VERIFY_MODES:
            raise HdfsValidationError(
                "Invalid ssl_verify_mode: {!r}".format(ssl_verify_mode)
            )
        if proxy_port is not None and not proxy_address:
            raise HdfsValidationError("proxy_port given without proxy_address")
        self._host_lock = threading.Lock()
        self._host = host
        self.port = int(port)
        self.username = username or os.environ.get("HADOOP_USER_NAME")
        self.doas = doas
        self.proxy_address = proxy_address
        self.proxy_port = proxy_port
        self.proxy_user = proxy_user
        self.proxy_password = proxy_password
        self.ssl = ssl
        self.ssl_ca_file = ssl_ca_file
        self.ssl_cert = ssl_cert
        self.ssl_key = ssl_key
        self.ssl_verify_mode = ssl_verify_mode
        self.kerberos = kerberos
        self.kerberos_keytab = kerberos_keytab or os.environ.get("KEYTAB_PATH")
        self.http_headers: Dict[str, str] = dict(http_headers or {})
        self.httpfs_mode = httpfs_mode
        self.gateway_path = gateway_path
        self.basic_auth = basic_auth
        self.retry_known_errors = retry_known_errors
        self.retry_times = retry_times
        self.retry_interval = retry_interval
        self.block_length_retry_interval = block_length_retry_interval
        self.server_error_retry_interval = server_error_retry_interval
        self.known_errors: List[str] = list(known_errors)
        self.open_timeout = open_timeout
        self.read_timeout = read_timeout
        self.jmx_host = jmx_host

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "ClientConfig":
        """Build a configuration from a plain mapping, e.g. parsed from a file.

        :raises HdfsValidationError: on unknown keys
        """
        try:
            return cls(**options)
        except TypeError as e:
            raise HdfsValidationError("Invalid options: {!r}".format(options)) from e

    def __repr__(self) -> str:
        return "{}(host={!r}, port={!r})".format(
            self.__class__.__name__, self.host, self.port
        )

    @property
    def host(self) -> str:
        with self._host_lock:
            return self._host

    @host.setter
    def host(self, value: str) -> None:
        if not value:
            raise HdfsValidationError("No host given")
        with self._host_lock:
            previous, self._host = self._host, value
        if previous != value:
            _logger.info("Switched NameNode from %s to %s", previous, value)

    @property
    def scheme(self) -> str:
        return "https" if self.ssl else "http"

    @property
    def timeout(self) -> Optional[Tuple[Optional[float], Optional[float]]]:
        """``(connect, read)`` tuple as understood by requests, or None to wait forever"""
        if self.open_timeout is None and self.read_timeout is None:
            return None
        return (self.open_timeout, self.read_timeout)
