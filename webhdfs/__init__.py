"""WebHDFS client with redirect handling, automatic error checking and NameNode failover

For details on the WebHDFS endpoints, see the Hadoop documentation:

- https://hadoop.apache.org/docs/current/hadoop-project-dist/hadoop-hdfs/WebHDFS.html
- https://hadoop.apache.org/docs/current/hadoop-project-dist/hadoop-common/filesystem/filesystem.html
"""  # noqa: E501
from webhdfs.client import ContentSummary
from webhdfs.client import FileChecksum
from webhdfs.client import FileStatus
from webhdfs.client import TypeQuota
from webhdfs.client import WebHdfsClient
from webhdfs.config import DEFAULT_PORT
from webhdfs.config import ClientConfig
from webhdfs.exceptions import HdfsAccessControlException
from webhdfs.exceptions import HdfsClientError
from webhdfs.exceptions import HdfsException
from webhdfs.exceptions import HdfsFileAlreadyExistsException
from webhdfs.exceptions import HdfsFileNotFoundException
from webhdfs.exceptions import HdfsHttpException
from webhdfs.exceptions import HdfsIllegalArgumentException
from webhdfs.exceptions import HdfsInvalidOpError
from webhdfs.exceptions import HdfsIOError
from webhdfs.exceptions import HdfsJMXUnavailable
from webhdfs.exceptions import HdfsKerberosError
from webhdfs.exceptions import HdfsLeaseExpiredException
from webhdfs.exceptions import HdfsNotFoundError
from webhdfs.exceptions import HdfsPathIsNotEmptyDirectoryException
from webhdfs.exceptions import HdfsRequestFailedError
from webhdfs.exceptions import HdfsRetriableException
from webhdfs.exceptions import HdfsSecurityError
from webhdfs.exceptions import HdfsServerError
from webhdfs.exceptions import HdfsStandbyException
from webhdfs.exceptions import HdfsValidationError
from webhdfs.protocol import WEBHDFS_PATH

__version__ = "0.4.0"

__all__ = [
    "ClientConfig",
    "ContentSummary",
    "DEFAULT_PORT",
    "FileChecksum",
    "FileStatus",
    "HdfsAccessControlException",
    "HdfsClientError",
    "HdfsException",
    "HdfsFileAlreadyExistsException",
    "HdfsFileNotFoundException",
    "HdfsHttpException",
    "HdfsIOError",
    "HdfsIllegalArgumentException",
    "HdfsInvalidOpError",
    "HdfsJMXUnavailable",
    "HdfsKerberosError",
    "HdfsLeaseExpiredException",
    "HdfsNotFoundError",
    "HdfsPathIsNotEmptyDirectoryException",
    "HdfsRequestFailedError",
    "HdfsRetriableException",
    "HdfsSecurityError",
    "HdfsServerError",
    "HdfsStandbyException",
    "HdfsValidationError",
    "TypeQuota",
    "WEBHDFS_PATH",
    "WebHdfsClient",
]
