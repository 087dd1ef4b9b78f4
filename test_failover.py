import io
import logging
from typing import Any
from typing import Dict
from typing import List
from unittest import mock
from urllib.parse import SplitResult

import pytest
import requests

from conftest import FakeCluster
from conftest import make_client
from conftest import make_response
from conftest import remote_exception
from webhdfs import ClientConfig
from webhdfs import HdfsClientError
from webhdfs import HdfsException
from webhdfs import HdfsIOError
from webhdfs import HdfsJMXUnavailable
from webhdfs import HdfsKerberosError
from webhdfs import HdfsNotFoundError
from webhdfs import HdfsServerError
from webhdfs import HdfsStandbyException
from webhdfs.discovery import JMX_STATUS_PATH
from webhdfs.discovery import NameNodeDiscovery
from webhdfs.retry import RetryPolicy

NN1 = "nn1:50070"
NN2 = "nn2:50070"
JMX = "jmx:50070"
DN = "dn1:9864"

BLOCK_LENGTH_MESSAGE = (
    "Cannot obtain block length for LocatedBlock{BP-1:blk_1073741825_1001; getBlockSize()=4}"
)


def setup_module(module: object) -> None:
    logging.basicConfig(level=logging.INFO)


def _file_status() -> requests.Response:
    return make_response(200, json={"FileStatus": {"pathSuffix": "", "type": "DIRECTORY"}})


def _jmx(host_and_port: str) -> requests.Response:
    return make_response(
        200,
        json={
            "beans": [
                {
                    "name": "Hadoop:service=NameNode,name=NameNodeStatus",
                    "State": "active",
                    "HostAndPort": host_and_port,
                }
            ]
        },
    )


def _healthy_namenode(method: str, parts: SplitResult, kwargs: Dict[str, Any]) -> Any:
    if "op=GETFILESTATUS" in parts.query:
        return _file_status()
    if "op=CREATE" in parts.query:
        return make_response(307, headers={"Location": "http://dn1:9864/f?op=CREATE"})
    return make_response(200, json={"boolean": True})


###############
# Retry tiers #
###############


@pytest.mark.parametrize("retry_times", [0, 1, 3])
def test_server_error_attempts(cluster: FakeCluster, retry_times: int) -> None:
    client = make_client(retry_times=retry_times)

    def namenode(method: str, parts: SplitResult, kwargs: Dict[str, Any]) -> Any:
        if parts.path == "/webhdfs/v1/":
            return _file_status()
        return make_response(500, "boom")

    cluster.route(NN1, namenode)
    with pytest.raises(HdfsServerError):
        client.stat("/a")
    assert len([url for url in cluster.urls() if "/v1/a?" in url]) == retry_times + 1
    # one health check before each retry
    assert len([url for url in cluster.urls() if "/v1/?" in url]) == retry_times


def test_unreachable_host_fails_health_check(cluster: FakeCluster) -> None:
    client = make_client(host="nowhere", retry_times=2)
    with pytest.raises(HdfsServerError, match="Failed to connect to host nowhere:50070"):
        client.mkdir("/a")
    assert cluster.urls() == [
        "http://nowhere:50070/webhdfs/v1/a?op=MKDIRS&user.name=alice",
        "http://nowhere:50070/webhdfs/v1/?op=GETFILESTATUS&user.name=alice",
    ]


def test_retry_without_jmx_checks_health(
    cluster: FakeCluster, caplog: pytest.LogCaptureFixture
) -> None:
    client = make_client()
    cluster.route(
        NN1,
        [remote_exception(403, "StandbyException", "Operation category READ"), _file_status()],
    )
    with caplog.at_level(logging.WARNING):
        assert client.stat("/a").type == "DIRECTORY"
    assert cluster.urls() == [
        "http://nn1:50070/webhdfs/v1/a?op=GETFILESTATUS&user.name=alice",
        "http://nn1:50070/webhdfs/v1/?op=GETFILESTATUS&user.name=alice",
        "http://nn1:50070/webhdfs/v1/a?op=GETFILESTATUS&user.name=alice",
    ]
    assert "JMX host is not set" in caplog.text
    assert "Remaining on nn1" in caplog.text
    assert client.host == "nn1"


def test_retry_disabled(cluster: FakeCluster) -> None:
    client = make_client(retry_known_errors=False, retry_times=5)
    cluster.route(NN1, remote_exception(403, "StandbyException", "Operation category READ"))
    with pytest.raises(HdfsStandbyException):
        client.stat("/")
    assert len(cluster.calls) == 1


@pytest.mark.parametrize(
    "response,cls",
    [
        (remote_exception(400, "IllegalArgumentException", "Invalid value"), HdfsClientError),
        (remote_exception(404, "FileNotFoundException", "File /a not found"), HdfsNotFoundError),
        (remote_exception(403, "AccessControlException", "Permission denied"), HdfsIOError),
    ],
)
def test_final_errors_are_not_retried(
    cluster: FakeCluster, response: requests.Response, cls: type
) -> None:
    client = make_client(retry_times=3, jmx_host=JMX)
    cluster.route(NN1, response)
    with pytest.raises(cls):
        client.stat("/a")
    assert cluster.urls() == ["http://nn1:50070/webhdfs/v1/a?op=GETFILESTATUS&user.name=alice"]


def test_block_length_retry_stays_on_host(cluster: FakeCluster) -> None:
    client = make_client(jmx_host=JMX)
    cluster.route(
        NN1,
        [
            make_response(307, headers={"Location": "http://dn1:9864/f?op=OPEN"}),
        ],
    )
    cluster.route(
        DN,
        [
            remote_exception(403, "IOException", BLOCK_LENGTH_MESSAGE),
            make_response(200, b"data"),
        ],
    )
    assert client.read("/f") == b"data"
    assert cluster.urls(JMX) == []
    assert len(cluster.urls(DN)) == 2
    assert client.host == "nn1"


def test_other_io_errors_are_final(cluster: FakeCluster) -> None:
    client = make_client(retry_times=3)
    cluster.route(NN1, remote_exception(403, "IOException", "Some other failure"))
    with pytest.raises(HdfsIOError):
        client.stat("/")
    assert len(cluster.calls) == 1


def test_custom_known_errors(cluster: FakeCluster) -> None:
    client = make_client(known_errors=["SafeModeException"])
    cluster.route(
        NN1,
        [remote_exception(403, "SafeModeException", "Name node is in safe mode"), _file_status()],
    )
    assert client.stat("/").type == "DIRECTORY"
    # failed call, health check, retry
    assert len(cluster.calls) == 3

    cluster.route(NN1, remote_exception(403, "StandbyException", "standby"))
    with pytest.raises(HdfsStandbyException):
        client.stat("/")
    assert len(cluster.calls) == 4


def test_payload_is_rewound(cluster: FakeCluster) -> None:
    client = make_client()
    received: List[bytes] = []

    def datanode(method: str, parts: SplitResult, kwargs: Dict[str, Any]) -> Any:
        received.append(kwargs["data"].read())
        if len(received) == 1:
            return make_response(500, "DataNode went away")
        return make_response(201)

    cluster.route(NN1, _healthy_namenode)
    cluster.route(DN, datanode)
    payload = io.BytesIO(b"header|lorem ipsum")
    payload.seek(len(b"header|"))
    assert client.create("/f", payload)
    assert received == [b"lorem ipsum", b"lorem ipsum"]


def test_iterator_payload_is_not_retried(cluster: FakeCluster) -> None:
    client = make_client(retry_times=3)
    received: List[bytes] = []

    def datanode(method: str, parts: SplitResult, kwargs: Dict[str, Any]) -> Any:
        received.append(next(kwargs["data"]))
        return make_response(500, "DataNode went away")

    cluster.route(NN1, _healthy_namenode)
    cluster.route(DN, datanode)
    with pytest.raises(HdfsServerError, match="DataNode went away"):
        client.create("/f", iter([b"part1|", b"part2"]))
    # the rest of the chunks are never sent as if they were the whole file
    assert received == [b"part1|"]
    assert len(cluster.urls(DN)) == 1
    assert len(cluster.urls(NN1)) == 1


def test_unseekable_file_is_not_retried(cluster: FakeCluster) -> None:
    client = make_client()

    class Pipe(io.RawIOBase):
        def readable(self) -> bool:
            return True

        def readinto(self, buffer: Any) -> int:
            return 0

    cluster.route(NN1, _healthy_namenode)
    cluster.route(DN, make_response(500, "DataNode went away"))
    with pytest.raises(HdfsServerError):
        client.append("/f", Pipe())
    assert len(cluster.urls(DN)) == 1


############
# Failover #
############


def test_failover_to_standby(cluster: FakeCluster, caplog: pytest.LogCaptureFixture) -> None:
    client = make_client(jmx_host=JMX)
    cluster.route(
        NN1, remote_exception(403, "StandbyException", "Operation category READ is not supported")
    )
    cluster.route(JMX, _jmx("nn2:50070"))
    cluster.route(NN2, _healthy_namenode)

    with caplog.at_level(logging.INFO):
        assert client.stat("/a").type == "DIRECTORY"

    assert client.host == "nn2"
    assert cluster.urls() == [
        "http://nn1:50070/webhdfs/v1/a?op=GETFILESTATUS&user.name=alice",
        "http://jmx:50070" + JMX_STATUS_PATH,
        "http://nn2:50070/webhdfs/v1/?op=GETFILESTATUS&user.name=alice",
        "http://nn2:50070/webhdfs/v1/a?op=GETFILESTATUS&user.name=alice",
    ]
    assert "Switched NameNode from nn1 to nn2" in caplog.text

    # the new host sticks for later calls
    assert client.mkdir("/b")
    assert cluster.urls()[-1].startswith("http://nn2:50070/")


def test_failover_during_redirected_write(cluster: FakeCluster) -> None:
    client = make_client(jmx_host=JMX)
    cluster.route(NN1, remote_exception(403, "StandbyException", "standby"))
    cluster.route(JMX, _jmx("nn2:50070"))
    cluster.route(NN2, _healthy_namenode)
    cluster.route(DN, make_response(201))

    assert client.create("/f", b"hello")
    assert [url.split("?")[0] for url in cluster.urls()] == [
        "http://nn1:50070/webhdfs/v1/f",
        "http://jmx:50070/jmx",
        "http://nn2:50070/webhdfs/v1/",
        "http://nn2:50070/webhdfs/v1/f",
        "http://dn1:9864/f",
    ]
    # the NameNode never sees the payload
    assert [kwargs["data"] for _, _, kwargs in cluster.calls] == [
        None,
        None,
        None,
        None,
        b"hello",
    ]


def test_failed_health_check_is_fatal(cluster: FakeCluster) -> None:
    client = make_client(jmx_host=JMX, retry_times=5)
    cluster.route(NN1, make_response(500, "NameNode is shutting down"))
    cluster.route(JMX, _jmx("nn2:50070"))
    cluster.route(NN2, make_response(500, "NameNode is starting up"))

    with pytest.raises(HdfsServerError, match="starting up"):
        client.stat("/")
    assert len(cluster.urls(NN1)) == 1
    assert len(cluster.urls(JMX)) == 1
    assert len(cluster.urls(NN2)) == 1


def test_failed_discovery_keeps_host(cluster: FakeCluster) -> None:
    client = make_client(jmx_host=JMX)
    cluster.route(
        NN1,
        [
            remote_exception(403, "RetriableException", "NameNode still not started"),
            _file_status(),
        ],
    )
    # JMX is unreachable
    assert client.stat("/").type == "DIRECTORY"
    assert client.host == "nn1"
    assert len(cluster.urls(JMX)) == 1
    assert len(cluster.urls(NN1)) == 3


def test_retries_are_bounded_with_failover(cluster: FakeCluster) -> None:
    client = make_client(jmx_host=JMX, retry_times=2)
    cluster.route(JMX, _jmx("nn1:50070"))

    def namenode(method: str, parts: SplitResult, kwargs: Dict[str, Any]) -> Any:
        if parts.path == "/webhdfs/v1/":
            return _file_status()
        return remote_exception(403, "LeaseExpiredException", "No lease on /f")

    cluster.route(NN1, namenode)
    with pytest.raises(HdfsIOError) as excinfo:
        client.delete("/f")
    assert excinfo.value.exception == "LeaseExpiredException"
    assert len([url for url in cluster.urls(NN1) if "op=DELETE" in url]) == 3
    assert len(cluster.urls(JMX)) == 2


#############
# Discovery #
#############


def test_discover_without_jmx_host(client: Any) -> None:
    with pytest.raises(HdfsJMXUnavailable):
        client.discover_active_namenode()
    assert client.refresh_from_discovery() is False
    assert client.host == "nn1"


def test_discover(cluster: FakeCluster) -> None:
    cluster.route(JMX, _jmx("nn2.example.com:8020"))
    client = make_client(jmx_host="http://jmx:50070")
    assert client.discover_active_namenode() == "nn2.example.com"
    assert client.host == "nn1"
    assert client.refresh_from_discovery() is True
    assert client.host == "nn2.example.com"


def test_discover_uses_client_scheme(cluster: FakeCluster) -> None:
    cluster.route(JMX, _jmx("nn2:50470"))
    client = make_client(jmx_host=JMX, ssl=True)
    assert client.discover_active_namenode() == "nn2"
    assert cluster.urls() == ["https://jmx:50070" + JMX_STATUS_PATH]


@pytest.mark.parametrize(
    "response",
    [
        make_response(500, "JMX exploded"),
        make_response(200, "<html>not json</html>"),
        make_response(200, json={"beans": []}),
        make_response(200, json={"beans": [{"State": "standby"}]}),
        make_response(200, json={"beans": [{"HostAndPort": None}]}),
        make_response(200, json=["beans"]),
        requests.exceptions.ConnectionError("connection refused"),
    ],
)
def test_discovery_failures(cluster: FakeCluster, response: Any) -> None:
    cluster.route(JMX, response)
    client = make_client(jmx_host=JMX)
    with pytest.raises(HdfsJMXUnavailable):
        client.discover_active_namenode()
    assert client.refresh_from_discovery() is False
    assert client.host == "nn1"


def test_jmx_errors_are_not_http_errors() -> None:
    assert issubclass(HdfsJMXUnavailable, HdfsException)
    assert not issubclass(HdfsJMXUnavailable, HdfsServerError)


###############
# RetryPolicy #
###############


def _policy(config: ClientConfig) -> Any:
    discovery = mock.Mock(spec=NameNodeDiscovery)
    health_check = mock.Mock()
    sleeps: List[float] = []
    policy = RetryPolicy(config, discovery, health_check, sleep=sleeps.append)
    return policy, discovery, health_check, sleeps


def test_policy_retries_kerberos_errors() -> None:
    policy, discovery, health_check, sleeps = _policy(
        ClientConfig(retry_times=2, server_error_retry_interval=7, jmx_host=JMX)
    )
    func = mock.Mock(
        side_effect=[HdfsKerberosError("GSSAPI failed"), HdfsKerberosError("again"), "ok"]
    )
    assert policy.call(func) == "ok"
    assert func.call_count == 3
    assert sleeps == [7, 7]
    assert discovery.refresh_from_discovery.call_count == 2
    assert health_check.call_count == 2


def test_policy_intervals() -> None:
    policy, discovery, health_check, sleeps = _policy(ClientConfig(retry_times=3))
    func = mock.Mock(
        side_effect=[
            HdfsStandbyException("standby", status_code=403, exception="StandbyException"),
            HdfsIOError(
                "x", status_code=403, exception="IOException", remote_message=BLOCK_LENGTH_MESSAGE
            ),
            HdfsServerError("boom", status_code=500),
            "ok",
        ]
    )
    before_retry = mock.Mock()
    assert policy.call(func, before_retry=before_retry) == "ok"
    assert sleeps == [10, 5, 15]
    assert before_retry.call_count == 3
    # the block length race is retried without rediscovery
    assert discovery.refresh_from_discovery.call_count == 2
    assert health_check.call_count == 2


def test_policy_gives_up() -> None:
    policy, discovery, health_check, sleeps = _policy(ClientConfig(retry_times=2))
    error = HdfsServerError("boom", status_code=500)
    func = mock.Mock(side_effect=error)
    with pytest.raises(HdfsServerError) as excinfo:
        policy.call(func)
    assert excinfo.value is error
    assert func.call_count == 3
    assert len(sleeps) == 2


def test_policy_single_attempt_when_not_replayable() -> None:
    policy, discovery, health_check, sleeps = _policy(ClientConfig(retry_times=3))
    func = mock.Mock(side_effect=HdfsServerError("boom", status_code=500))
    with pytest.raises(HdfsServerError):
        policy.call(func, replayable=False)
    assert func.call_count == 1
    assert sleeps == []
    discovery.refresh_from_discovery.assert_not_called()


def test_policy_health_check_failure() -> None:
    policy, discovery, health_check, sleeps = _policy(
        ClientConfig(retry_times=3, jmx_host=JMX)
    )
    health_check.side_effect = HdfsException("still down")
    func = mock.Mock(side_effect=HdfsServerError("boom", status_code=500))
    with pytest.raises(HdfsException, match="still down"):
        policy.call(func)
    assert func.call_count == 1
    discovery.refresh_from_discovery.assert_called_once_with()
