"""Active NameNode discovery through the NameNode JMX servlet"""
import logging
from urllib.parse import urlsplit

import simplejson.scanner

from webhdfs.config import ClientConfig
from webhdfs.exceptions import HdfsHttpException
from webhdfs.exceptions import HdfsJMXUnavailable
from webhdfs.protocol import classify_response
from webhdfs.protocol import parse_location
from webhdfs.transport import Transport

JMX_STATUS_PATH = "/jmx?qry=Hadoop:service=NameNode,name=NameNodeStatus"

_logger = logging.getLogger(__name__)


class NameNodeDiscovery(object):
    """Asks a JMX endpoint which NameNode is active.

    :param config: Client configuration. ``jmx_host`` is read on every lookup and ``host`` is
        overwritten by :py:meth:`refresh_from_discovery`.
    :param transport: Transport used for the JMX request.
    """

    def __init__(self, config: ClientConfig, transport: Transport) -> None:
        self.config = config
        self.transport = transport

    def discover_active_namenode(self) -> str:
        """Return the hostname (without port) of the active NameNode.

        :raises HdfsJMXUnavailable: no JMX host is configured, the endpoint failed, or it did not
            answer with a NameNodeStatus bean
        """
        jmx_host = self.config.jmx_host
        if not jmx_host:
            raise HdfsJMXUnavailable("JMX host is not set")
        if "//" not in jmx_host:
            jmx_host = "{}://{}".format(self.config.scheme, jmx_host)
        try:
            host, port, _ = parse_location(jmx_host)
            response = self.transport.send(
                "GET", host, port, urlsplit(jmx_host).path.rstrip("/") + JMX_STATUS_PATH
            )
            classify_response(response)
            js = response.json()
            host_and_port = js["beans"][0]["HostAndPort"]
        except HdfsHttpException as e:
            raise HdfsJMXUnavailable(
                "JMX request to {} failed: {}".format(jmx_host, e)
            ) from e
        except (
            ValueError,
            simplejson.scanner.JSONDecodeError,
            KeyError,
            IndexError,
            TypeError,
        ) as e:
            raise HdfsJMXUnavailable(
                "Unexpected JMX answer from {}: {!r}".format(jmx_host, e)
            ) from e
        if not isinstance(host_and_port, str) or not host_and_port:
            raise HdfsJMXUnavailable(
                "Unexpected HostAndPort from {}: {!r}".format(jmx_host, host_and_port)
            )
        return host_and_port.split(":")[0]

    def refresh_from_discovery(self) -> bool:
        """Point the configuration at the active NameNode.

        On failure the client stays on its last known host.

        :returns: whether discovery succeeded
        """
        try:
            self.config.host = self.discover_active_namenode()
        except HdfsJMXUnavailable as e:
            _logger.warning("Failed to detect namenode with error: %s", e)
            _logger.warning("Remaining on %s", self.config.host)
            return False
        return True
