"""HTTP transport: one request in, one response out

Everything connection related (TLS material, HTTP proxies, SPNEGO, gateway basic auth, timeouts
and static headers) is decided here, so the protocol code above only deals in methods, hosts and
paths. Transport level failures come out as :py:class:`~webhdfs.exceptions.HdfsServerError`, or
:py:class:`~webhdfs.exceptions.HdfsKerberosError` when SPNEGO negotiation blew up.
"""
import logging
import os
from typing import Any
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Tuple
from typing import Type
from typing import Union
from typing import cast
from urllib.parse import quote

import requests.api
import requests.exceptions

from webhdfs.config import ClientConfig
from webhdfs.exceptions import HdfsKerberosError
from webhdfs.exceptions import HdfsServerError
from webhdfs.exceptions import HdfsValidationError

_logger = logging.getLogger(__name__)

_RESERVED_REQUESTS_KWARGS = (
    "method",
    "url",
    "data",
    "headers",
    "timeout",
    "stream",
    "params",
    "allow_redirects",
)


class Transport(object):
    """Sends single HTTP requests on behalf of a client.

    :param config: Shared client configuration. Read on every request, so changes made through
        its setters apply to the next request.
    :param requests_session: A ``requests.Session`` object for advanced usage. If absent, this
        class will use the default requests behavior of making a new session per HTTP request.
        Caller is responsible for closing session.
    :param requests_kwargs: Additional ``**kwargs`` to pass to requests
    """

    def __init__(
        self,
        config: ClientConfig,
        requests_session: Optional[requests.Session] = None,
        requests_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config = config
        self._requests_session = requests_session or cast(
            requests.Session, requests.api
        )
        self._requests_kwargs = requests_kwargs or {}
        for k in _RESERVED_REQUESTS_KWARGS:
            if k in self._requests_kwargs:
                raise ValueError("Cannot override requests argument {}".format(k))
        self._kerberos_errors: Tuple[Type[BaseException], ...] = ()
        self._auth = self._make_auth()

    def _make_auth(self) -> Any:
        config = self.config
        if config.kerberos and config.basic_auth:
            raise HdfsValidationError("Cannot combine kerberos and basic_auth")
        if config.basic_auth:
            return tuple(config.basic_auth)
        if not config.kerberos:
            return None
        if not config.kerberos_keytab:
            raise HdfsKerberosError("The kerberos keytab must be set")
        # MIT krb5 picks up client keytabs from the environment
        os.environ["KRB5_CLIENT_KTNAME"] = config.kerberos_keytab
        import requests_kerberos
        import requests_kerberos.exceptions

        self._kerberos_errors = (
            requests_kerberos.exceptions.MutualAuthenticationError,
            requests_kerberos.exceptions.KerberosExchangeError,
        )
        return requests_kerberos.HTTPKerberosAuth(
            mutual_authentication=requests_kerberos.OPTIONAL
        )

    def _proxies(self) -> Optional[Dict[str, str]]:
        config = self.config
        if not config.proxy_address:
            return None
        netloc = config.proxy_address
        if config.proxy_port is not None:
            netloc = "{}:{}".format(netloc, config.proxy_port)
        if config.proxy_user:
            credentials = quote(config.proxy_user, safe="")
            if config.proxy_password:
                credentials += ":" + quote(config.proxy_password, safe="")
            netloc = "{}@{}".format(credentials, netloc)
        proxy = "http://" + netloc
        return {"http": proxy, "https": proxy}

    def _verify(self) -> Union[bool, str]:
        if self.config.ssl_verify_mode == "none":
            return False
        return self.config.ssl_ca_file or True

    def _cert(self) -> Union[None, str, Tuple[str, str]]:
        if self.config.ssl_cert and self.config.ssl_key:
            return (self.config.ssl_cert, self.config.ssl_key)
        return self.config.ssl_cert

    def send(
        self,
        method: str,
        host: str,
        port: int,
        path: str,
        headers: Optional[Mapping[str, str]] = None,
        data: Any = None,
        stream: bool = False,
    ) -> requests.Response:
        """Perform one request and return the response whatever its status.

        :param path: Already encoded path, including the query string.
        :param data: ``bytes``, ``str``, a file-like object or an iterator of chunks. The last two
            are streamed by requests.
        :raises HdfsServerError: the server could not be reached or timed out
        :raises HdfsKerberosError: SPNEGO negotiation failed
        """
        url = "{}://{}:{}{}".format(self.config.scheme, host, port, path)
        all_headers = dict(self.config.http_headers)
        all_headers.update(headers or {})
        _logger.debug("%s %s", method.upper(), url)
        try:
            return self._requests_session.request(
                method,
                url,
                data=data,
                headers=all_headers,
                timeout=self.config.timeout,
                stream=stream,
                allow_redirects=False,
                auth=self._auth,
                proxies=self._proxies(),
                verify=self._verify(),
                cert=self._cert(),
                **self._requests_kwargs,
            )
        except self._kerberos_errors as e:
            raise HdfsKerberosError(
                "Kerberos negotiation with {}:{} failed: {}".format(host, port, e)
            ) from e
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise HdfsServerError(
                "Failed to connect to host {}:{}, {}".format(host, port, e)
            ) from e
