"""Exception hierarchy for WebHDFS failures

The HTTP status code of a failed exchange decides the kind of error (see
:py:data:`STATUS_CLASSES`). When the body carries a ``RemoteException`` whose name maps to one of
the refinement classes below, and that class is a subclass of the kind, the refinement is raised
instead so callers can catch e.g. :py:class:`HdfsStandbyException` directly.
"""
from typing import Dict
from typing import Optional
from typing import Type


class HdfsException(Exception):
    """Base class for all errors while communicating with WebHDFS server"""


class HdfsValidationError(HdfsException, ValueError):
    """Unrecognized option key or missing option combination, raised before any request"""


class HdfsJMXUnavailable(HdfsException):
    """The JMX discovery endpoint is not configured, unreachable or returned garbage"""


class HdfsHttpException(HdfsException):
    """The client talked to the server (or tried to) and the exchange failed.

    :param message: Exception message, usually the response body with newlines stripped
    :param status_code: HTTP status code, ``None`` for transport level failures
    :type status_code: int
    :param exception: Name of the remote exception, if the body carried one
    :param remote_message: Message of the remote exception, if the body carried one
    :param kwargs: any extra attributes in case Hadoop adds more stuff (e.g. ``javaClassName``)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        exception: Optional[str] = None,
        remote_message: Optional[str] = None,
        **kwargs: object,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.exception = exception
        self.remote_message = remote_message
        self.__dict__.update(kwargs)


class HdfsClientError(HdfsHttpException):
    """400: malformed request"""


class HdfsSecurityError(HdfsHttpException):
    """401: authentication failure"""


class HdfsIOError(HdfsHttpException):
    """403: includes server side filesystem exceptions"""


class HdfsNotFoundError(HdfsHttpException):
    """404"""


class HdfsServerError(HdfsHttpException):
    """500, or the server could not be reached at all"""


class HdfsRequestFailedError(HdfsHttpException):
    """Any other non-success status, or a protocol violation such as a missing redirect"""


class HdfsKerberosError(HdfsServerError):
    """SPNEGO negotiation failed. Handled like any other transport failure."""


class HdfsInvalidOpError(HdfsHttpException):
    """A read of something that exists but is not a readable file, e.g. a directory.

    WebHDFS answers such reads with a 404 like a missing path, see
    :py:meth:`webhdfs.client.WebHdfsClient.read`.
    """


# NOTE: the following exceptions are referenced using globals() to build _REMOTE_EXCEPTION_CLASSES


class HdfsIllegalArgumentException(HdfsClientError):
    pass


class HdfsInvalidPathException(HdfsIllegalArgumentException):
    pass


class HdfsUnsupportedOperationException(HdfsClientError):
    pass


class HdfsAccessControlException(HdfsIOError):
    pass


class HdfsFileAlreadyExistsException(HdfsIOError):
    pass


class HdfsPathIsNotEmptyDirectoryException(HdfsIOError):
    pass


class HdfsQuotaExceededException(HdfsIOError):
    pass


class HdfsNSQuotaExceededException(HdfsQuotaExceededException):
    pass


class HdfsDSQuotaExceededException(HdfsQuotaExceededException):
    pass


class HdfsLeaseExpiredException(HdfsIOError):
    pass


# thrown in startup mode
class HdfsRetriableException(HdfsIOError):
    pass


class HdfsStandbyException(HdfsIOError):
    pass


class HdfsFileNotFoundException(HdfsNotFoundError):
    pass


class HdfsRuntimeException(HdfsServerError):
    pass


_REMOTE_EXCEPTION_CLASSES: Dict[str, Type[HdfsHttpException]] = {
    name: member
    for name, member in globals().items()
    if isinstance(member, type)
    and issubclass(member, HdfsHttpException)
    and name.endswith("Exception")
    and member is not HdfsHttpException
}

STATUS_CLASSES: Dict[int, Type[HdfsHttpException]] = {
    400: HdfsClientError,
    401: HdfsSecurityError,
    403: HdfsIOError,
    404: HdfsNotFoundError,
    500: HdfsServerError,
}


def exception_class(
    status_code: int, remote_exception: Optional[str] = None
) -> Type[HdfsHttpException]:
    """Pick the class to raise for a failed response"""
    base = STATUS_CLASSES.get(status_code, HdfsRequestFailedError)
    if remote_exception:
        refined = _REMOTE_EXCEPTION_CLASSES.get("Hdfs" + remote_exception)
        if refined is not None and issubclass(refined, base):
            return refined
    return base
