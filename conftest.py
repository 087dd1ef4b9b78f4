import io
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union
from unittest import mock
from urllib.parse import SplitResult
from urllib.parse import urlsplit

import pytest
import requests
import simplejson

from webhdfs import WebHdfsClient

_Responder = Union[
    requests.Response,
    Exception,
    List[Union[requests.Response, Exception]],
    Callable[[str, SplitResult, Dict[str, Any]], requests.Response],
]


def make_response(
    status_code: int,
    body: Union[bytes, str] = b"",
    json: Any = None,
    headers: Optional[Dict[str, str]] = None,
) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    if json is not None:
        body = simplejson.dumps(json)
        response.headers["Content-Type"] = "application/json"
    response.headers.update(headers or {})
    if isinstance(body, str):
        body = body.encode("utf-8")
    response._content = body
    response.raw = io.BytesIO(body)
    response.encoding = "utf-8"
    return response


def remote_exception(status_code: int, exception: str, message: str) -> requests.Response:
    return make_response(
        status_code,
        json={
            "RemoteException": {
                "exception": exception,
                "javaClassName": "org.apache.hadoop." + exception,
                "message": message,
            }
        },
    )


class FakeCluster(object):
    """Stands in for every HTTP server the client talks to, keyed by ``host:port``.

    A route answers with a fixed response, raises a fixed exception, plays a list of responses in
    order (repeating the last one), or calls a function with ``(method, url parts, kwargs)``.
    Unknown hosts are unreachable.
    """

    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Dict[str, Any]]] = []
        self._routes: Dict[str, _Responder] = {}

    def route(self, netloc: str, responder: _Responder) -> None:
        if isinstance(responder, list):
            responder = list(responder)
        self._routes[netloc] = responder

    def urls(self, netloc: Optional[str] = None) -> List[str]:
        return [
            url
            for _, url, _ in self.calls
            if netloc is None or urlsplit(url).netloc == netloc
        ]

    def __call__(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append((method, url, kwargs))
        parts = urlsplit(url)
        responder = self._routes.get(parts.netloc)
        if responder is None:
            raise requests.exceptions.ConnectionError(
                "Failed to establish a new connection to {}".format(parts.netloc)
            )
        if isinstance(responder, list):
            result = responder.pop(0) if len(responder) > 1 else responder[0]
        elif callable(responder):
            result = responder(method, parts, kwargs)
        else:
            result = responder
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def cluster() -> Iterator[FakeCluster]:
    fake = FakeCluster()
    with mock.patch("requests.api.request", fake):
        yield fake


def make_client(*args: Any, **kwargs: Any) -> WebHdfsClient:
    kwargs.setdefault("host", "nn1")
    kwargs.setdefault("port", 50070)
    kwargs.setdefault("username", "alice")
    kwargs.setdefault("retry_interval", 0)
    kwargs.setdefault("block_length_retry_interval", 0)
    kwargs.setdefault("server_error_retry_interval", 0)
    return WebHdfsClient(*args, **kwargs)


@pytest.fixture
def client(cluster: FakeCluster) -> WebHdfsClient:
    return make_client()
