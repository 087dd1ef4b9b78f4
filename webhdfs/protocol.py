"""WebHDFS request construction and the two-step redirect protocol

For details on the WebHDFS endpoints, see the Hadoop documentation:

- https://hadoop.apache.org/docs/current/hadoop-project-dist/hadoop-hdfs/WebHDFS.html
- https://hadoop.apache.org/docs/current/hadoop-project-dist/hadoop-hdfs-httpfs/index.html
"""  # noqa: E501
import logging
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import NamedTuple
from typing import Optional
from typing import Tuple
from typing import Union
from urllib.parse import quote as url_quote
from urllib.parse import urlencode
from urllib.parse import urlsplit

import requests
import simplejson
import simplejson.scanner

from webhdfs.config import ClientConfig
from webhdfs.exceptions import HdfsRequestFailedError
from webhdfs.exceptions import exception_class
from webhdfs.operations import Operation
from webhdfs.transport import Transport

WEBHDFS_PATH = "/webhdfs/v1"
OCTET_STREAM = {"Content-Type": "application/octet-stream"}
EMPTY_BODY_MESSAGE = "Response body is empty..."

_logger = logging.getLogger(__name__)


class Success(NamedTuple):
    response: requests.Response


class Redirect(NamedTuple):
    location: str


###############
# URL Builder #
###############


def with_gateway(request_path: str, gateway_path: Optional[str]) -> str:
    """Put the gateway prefix in front of a path that starts at the API root.

    A path already carrying ``<gateway>/webhdfs/v1`` is returned unchanged.
    """
    if not gateway_path:
        return request_path
    prefix = "/" + gateway_path.strip("/")
    if request_path.startswith(prefix + WEBHDFS_PATH):
        return request_path
    return prefix + request_path


def api_path(path: str, gateway_path: Optional[str] = None) -> str:
    """Put the API root (and the gateway prefix, if any) in front of an HDFS path.

    The HDFS path is taken as is: ``/webhdfs/v1/x`` names a directory called ``webhdfs``.
    """
    if path.startswith("/"):
        request_path = WEBHDFS_PATH + path
    else:
        request_path = WEBHDFS_PATH + "/" + path
    return with_gateway(request_path, gateway_path)


def _query_value(value: Any) -> Any:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return [_query_value(v) for v in value]
    return value


def build_request_path(
    config: ClientConfig, path: str, op: Operation, params: Mapping[str, Any]
) -> str:
    """Return the encoded request path and query string for an operation"""
    query: List[Tuple[str, Any]] = [("op", op.name)]
    if config.username:
        query.append(("user.name", config.username))
    if config.doas:
        query.append(("doas", config.doas))
    query.extend(
        (key, _query_value(value))
        for key, value in params.items()
        if value is not None
    )
    encoded_path = url_quote(api_path(path, config.gateway_path).encode("utf-8"))
    return encoded_path + "?" + urlencode(query, doseq=True)


#######################
# Response Classifier #
#######################


def _remote_exception(response: requests.Response) -> Dict[str, Any]:
    try:
        js = response.json()
    except (ValueError, simplejson.scanner.JSONDecodeError):
        return {}
    if not isinstance(js, dict) or not isinstance(js.get("RemoteException"), dict):
        return {}
    return js["RemoteException"]


def error_message(response: requests.Response) -> str:
    body = response.text
    if not body:
        return EMPTY_BODY_MESSAGE
    return body.replace("\r", "").replace("\n", "")


def classify_response(
    response: requests.Response,
) -> Union[Success, Redirect]:
    """Turn a finished exchange into :py:class:`Success` or :py:class:`Redirect`.

    :raises HdfsHttpException: the matching subclass for any other status
    """
    status = response.status_code
    if 200 <= status < 300:
        return Success(response)
    if 300 <= status < 400:
        location = response.headers.get("Location")
        if location:
            return Redirect(location)
        raise HdfsRequestFailedError(
            "Redirect without location header, code:{}, body:{}".format(
                status, error_message(response)
            ),
            status_code=status,
        )
    message = error_message(response)
    remote = dict(_remote_exception(response))
    name = remote.pop("exception", None)
    remote_message = remote.pop("message", None)
    cls = exception_class(status, name)
    if cls is HdfsRequestFailedError:
        message = "response code:{}, message:{}".format(status, message)
    raise cls(
        message,
        status_code=status,
        exception=name,
        remote_message=remote_message,
        **remote,
    )


def decode_body(response: requests.Response) -> Any:
    """JSON if the body parses as such, the text otherwise"""
    try:
        return simplejson.loads(response.text)
    except simplejson.scanner.JSONDecodeError:
        return response.text


def boolean_result(response: requests.Response) -> bool:
    """Whether an operation reporting through ``{"boolean": ...}`` actually applied.

    A falsy value is a successful exchange where nothing happened (e.g. deleting a missing path),
    not an error.
    """
    content_type = response.headers.get("Content-Type", "")
    if response.status_code != 200 or not content_type.startswith("application/json"):
        return False
    body = decode_body(response)
    return isinstance(body, dict) and bool(body.get("boolean"))


#############################
# Redirect Protocol Handler #
#############################


def parse_location(location: str) -> Tuple[str, int, str]:
    """Split a redirect target into host, port and path with query"""
    parts = urlsplit(location)
    if not parts.hostname:
        raise HdfsRequestFailedError(
            "Unusable redirect location: {!r}".format(location)
        )
    try:
        port = parts.port
    except ValueError as e:
        raise HdfsRequestFailedError(
            "Unusable redirect location: {!r}".format(location)
        ) from e
    if port is None:
        port = 443 if parts.scheme == "https" else 80
    path = parts.path or "/"
    if parts.query:
        path += "?" + parts.query
    return parts.hostname, port, path


class RedirectHandler(object):
    """Runs one WebHDFS operation, following the NameNode redirect for data operations.

    Non-redirected operations, and every operation in HttpFS mode, are a single request carrying
    the payload. Redirected operations first ask the NameNode (without payload), which must
    answer with a redirect; the real request then goes verbatim to the redirect location.
    """

    def __init__(self, config: ClientConfig, transport: Transport) -> None:
        self.config = config
        self.transport = transport

    def execute(
        self,
        op: Operation,
        path: str,
        params: Mapping[str, Any],
        data: Any = None,
        stream: bool = False,
    ) -> requests.Response:
        """Return the final successful response.

        :raises HdfsHttpException: per :py:func:`classify_response`, or
            :py:class:`~webhdfs.exceptions.HdfsRequestFailedError` when the NameNode does not
            redirect a data operation
        """
        host = self.config.host
        port = self.config.port
        if not op.redirected or self.config.httpfs_mode:
            headers = None
            if data is not None:
                headers = OCTET_STREAM
                if self.config.httpfs_mode:
                    params = dict(params, data=True)
            request_path = build_request_path(self.config, path, op, params)
            response = self.transport.send(
                op.method,
                host,
                port,
                request_path,
                headers=headers,
                data=data,
                stream=stream,
            )
            result = classify_response(response)
            if isinstance(result, Redirect):
                raise HdfsRequestFailedError(
                    "Unexpected redirect to {} for {}".format(result.location, op.name),
                    status_code=response.status_code,
                )
            return response

        request_path = build_request_path(self.config, path, op, params)
        response = self.transport.send(op.method, host, port, request_path)
        result = classify_response(response)
        if not isinstance(result, Redirect):
            raise HdfsRequestFailedError(
                "NameNode returns non-redirection (or without location header), "
                "code:{}, body:{}.".format(response.status_code, response.text),
                status_code=response.status_code,
            )
        data_host, data_port, data_path = parse_location(result.location)
        _logger.debug("%s redirected to %s:%s", op.name, data_host, data_port)
        data_response = self.transport.send(
            op.method,
            data_host,
            data_port,
            data_path,
            headers=OCTET_STREAM if data is not None else None,
            data=data,
            stream=stream,
        )
        if isinstance(classify_response(data_response), Redirect):
            raise HdfsRequestFailedError(
                "DataNode {}:{} redirected again, code:{}".format(
                    data_host, data_port, data_response.status_code
                ),
                status_code=data_response.status_code,
            )
        return data_response
