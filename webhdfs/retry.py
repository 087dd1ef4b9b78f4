"""Retry and NameNode failover policy

A failed call is looked at in this order:

1. :py:class:`~webhdfs.exceptions.HdfsIOError` carrying one of the configured known transient
   remote exceptions (lease expiry, standby NameNode, ...): wait, rediscover the active NameNode,
   check health, retry.
2. :py:class:`~webhdfs.exceptions.HdfsIOError` saying "Cannot obtain block length": a read
   racing a writer. Wait a little and retry against the same host.
3. :py:class:`~webhdfs.exceptions.HdfsServerError` (500s, unreachable hosts, SPNEGO failures):
   wait longer, rediscover, check health, retry.
4. Everything else goes straight back to the caller.

At most ``retry_times`` retries happen per call, one after the other. A call streaming a payload
that cannot be rewound is never retried.
"""
import logging
import re
import time
from typing import Callable
from typing import Optional
from typing import Tuple
from typing import TypeVar

from webhdfs.config import ClientConfig
from webhdfs.discovery import NameNodeDiscovery
from webhdfs.exceptions import HdfsException
from webhdfs.exceptions import HdfsIOError
from webhdfs.exceptions import HdfsServerError

BLOCK_LENGTH_PATTERN = re.compile(r"^Cannot obtain block length")

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(object):
    """Wraps calls with the retry and failover rules described in this module.

    :param config: Client configuration holding the retry settings.
    :param discovery: Used to find the active NameNode after a failover.
    :param health_check: Called after a rediscovery attempt. It must raise if the client is not
        operational; that error aborts the retry.
    :param sleep: Blocking sleep, swappable for tests.
    """

    def __init__(
        self,
        config: ClientConfig,
        discovery: NameNodeDiscovery,
        health_check: Callable[[], object],
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.config = config
        self.discovery = discovery
        self.health_check = health_check
        self.sleep = sleep

    def _plan(self, error: HdfsException) -> Optional[Tuple[float, bool]]:
        """Return ``(seconds to wait, rediscover first?)``, or None if the error is final"""
        if isinstance(error, HdfsIOError):
            if error.exception in self.config.known_errors:
                return self.config.retry_interval, True
            message = error.remote_message or error.message
            if BLOCK_LENGTH_PATTERN.search(message):
                return self.config.block_length_retry_interval, False
            return None
        if isinstance(error, HdfsServerError):
            return self.config.server_error_retry_interval, True
        return None

    def _failover(self) -> None:
        """Rediscover the NameNode and make sure it answers.

        A failed discovery (including a missing JMX host) only logs a warning, the health check
        then runs against the current host.
        """
        self.discovery.refresh_from_discovery()
        try:
            self.health_check()
        except HdfsException:
            _logger.error(
                "Failed to access HDFS at %s after rediscovery",
                self.config.host,
                exc_info=True,
            )
            raise

    def call(
        self,
        func: Callable[[], T],
        before_retry: Optional[Callable[[], None]] = None,
        replayable: bool = True,
    ) -> T:
        """Run ``func`` until it succeeds, raises something final or runs out of retries.

        :param before_retry: Called right before each retry, e.g. to rewind a payload.
        :param replayable: False if ``func`` cannot be run twice with the same effect, e.g. it
            streams a payload that cannot be rewound. The first failure is then final.
        """
        retries = self.config.retry_times if self.config.retry_known_errors else 0
        if not replayable:
            retries = 0
        attempt = 0
        while True:
            try:
                return func()
            except (HdfsIOError, HdfsServerError) as e:
                plan = self._plan(e)
                if plan is None:
                    raise
                if attempt >= retries:
                    if not replayable:
                        _logger.warning(
                            "Not retrying %s, the payload cannot be sent again", e.message
                        )
                    elif retries:
                        _logger.warning(
                            "Giving up on %s after %d attempts",
                            e.message,
                            attempt + 1,
                            exc_info=True,
                        )
                    raise
                attempt += 1
                delay, rediscover = plan
                _logger.warning(
                    "%s (attempt %d/%d), retrying in %ss",
                    e.exception or e.message,
                    attempt,
                    retries,
                    delay,
                )
                self.sleep(delay)
                if rediscover:
                    self._failover()
            if before_retry is not None:
                before_retry()
