"""WebHDFS client with redirect handling, automatic error checking and NameNode failover"""
import datetime
import logging
import posixpath
import re
import shutil
from typing import IO
from typing import Any
from typing import Callable
from typing import Dict
from typing import Iterator
from typing import List
from typing import Optional
from typing import Tuple
from typing import Union

import requests

from webhdfs.config import ClientConfig
from webhdfs.discovery import NameNodeDiscovery
from webhdfs.exceptions import HdfsException
from webhdfs.exceptions import HdfsInvalidOpError
from webhdfs.exceptions import HdfsKerberosError
from webhdfs.exceptions import HdfsNotFoundError
from webhdfs.operations import OPERATIONS
from webhdfs.operations import check_options
from webhdfs.operations import require_one_of
from webhdfs.protocol import RedirectHandler
from webhdfs.protocol import boolean_result
from webhdfs.protocol import decode_body
from webhdfs.retry import RetryPolicy
from webhdfs.transport import Transport

_logger = logging.getLogger(__name__)

_PossibleArgumentTypes = Union[str, int, bool, None, List[str]]
_Data = Union[bytes, str, IO[bytes], Iterator[bytes], None]

_NOT_FOUND_PATTERN = re.compile(r"not found")


def _is_seekable(data: _Data) -> bool:
    if not (hasattr(data, "seek") and hasattr(data, "tell")):
        return False
    seekable = getattr(data, "seekable", None)
    return seekable() if callable(seekable) else True


def _invalid_read(e: HdfsNotFoundError) -> Optional[HdfsInvalidOpError]:
    """Tell a missing file apart from reading something that is not a file.

    Both come back as a 404. Only the message says which one it was.
    """
    message = e.remote_message or e.message
    if _NOT_FOUND_PATTERN.search(message):
        return None
    return HdfsInvalidOpError(
        message,
        status_code=e.status_code,
        exception=e.exception,
        remote_message=e.remote_message,
    )


class _BoilerplateClass(Dict[str, object]):
    """Turns a dictionary into a nice looking object with a pretty repr.

    Unlike namedtuple, this class is very lenient. It will not error out when it gets extra
    attributes. This lets us tolerate new HDFS features without any code change at the expense of
    higher chance of error / more black magic.
    """

    def __init__(self, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.__dict__ = self

    def __repr__(self) -> str:
        kvs = ["{}={!r}".format(k, v) for k, v in self.items()]
        return "{}({})".format(self.__class__.__name__, ", ".join(kvs))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, self.__class__) and dict.__eq__(self, other)

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)


class TypeQuota(_BoilerplateClass):
    """
    :param consumed: The storage type space consumed.
    :type consumed: int
    :param quota: The storage type quota.
    :type quota: int
    """

    consumed: int
    quota: int


class ContentSummary(_BoilerplateClass):
    """
    :param directoryCount: The number of directories.
    :type directoryCount: int
    :param fileCount: The number of files.
    :type fileCount: int
    :param length: The number of bytes used by the content.
    :type length: int
    :param quota: The namespace quota of this directory.
    :type quota: int
    :param spaceConsumed: The disk space consumed by the content.
    :type spaceConsumed: int
    :param spaceQuota: The disk space quota.
    :type spaceQuota: int
    :param typeQuota: Quota usage for ARCHIVE, DISK, SSD
    :type typeQuota: Dict[str, TypeQuota]
    """

    directoryCount: int
    fileCount: int
    length: int
    quota: int
    spaceConsumed: int
    spaceQuota: int
    typeQuota: Dict[str, TypeQuota]


class FileChecksum(_BoilerplateClass):
    """
    :param algorithm: The name of the checksum algorithm.
    :type algorithm: str
    :param bytes: The byte sequence of the checksum in hexadecimal.
    :type bytes: str
    :param length: The length of the bytes (not the length of the string).
    :type length: int
    """

    algorithm: str
    bytes: str
    length: int


class FileStatus(_BoilerplateClass):
    """
    :param accessTime: The access time.
    :type accessTime: int
    :param blockSize: The block size of a file.
    :type blockSize: int
    :param group: The group owner.
    :type group: str
    :param length: The number of bytes in a file.
    :type length: int
    :param modificationTime: The modification time.
    :type modificationTime: int
    :param owner: The user who is the owner.
    :type owner: str
    :param pathSuffix: The path suffix.
    :type pathSuffix: str
    :param permission: The permission represented as a octal string.
    :type permission: str
    :param replication: The number of replication of a file.
    :type replication: int
    :param type: The type of the path object.
    :type type: str
    """

    accessTime: int
    blockSize: int
    group: str
    length: int
    modificationTime: int
    owner: str
    pathSuffix: str
    permission: str
    replication: int
    type: str


class WebHdfsClient(object):
    """HDFS client backed by WebHDFS.

    Every operation validates its options before touching the network, follows the NameNode
    redirect for data operations (unless ``httpfs_mode`` is set) and runs under the retry and
    failover policy of :py:mod:`webhdfs.retry`.

    :param host: NameNode hostname. See :py:class:`~webhdfs.config.ClientConfig` for this and all
        other keyword arguments.
    :param port: NameNode HTTP port.
    :param requests_session: A ``requests.Session`` object for advanced usage. Caller is
        responsible for closing session.
    :param requests_kwargs: Additional ``**kwargs`` to pass to requests
    """

    def __init__(
        self,
        host: str = "localhost",
        port: Optional[int] = None,
        requests_session: Optional[requests.Session] = None,
        requests_kwargs: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        """Create a new WebHDFS client"""
        if port is not None:
            kwargs["port"] = port
        self._setup(
            ClientConfig(host=host, **kwargs), None, requests_session, requests_kwargs
        )

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        transport: Optional[Transport] = None,
    ) -> "WebHdfsClient":
        """Build a client around an existing configuration and, optionally, transport"""
        client = cls.__new__(cls)
        client._setup(config, transport, None, None)
        return client

    def _setup(
        self,
        config: ClientConfig,
        transport: Optional[Transport],
        requests_session: Optional[requests.Session],
        requests_kwargs: Optional[Dict[str, Any]],
    ) -> None:
        self.config = config
        self.transport = transport or Transport(
            config, requests_session, requests_kwargs
        )
        self.handler = RedirectHandler(config, self.transport)
        self.discovery = NameNodeDiscovery(config, self.transport)
        self.retry_policy = RetryPolicy(config, self.discovery, self.ensure_operational)
        _logger.info("Instantiated %r", self)

    def __repr__(self) -> str:
        return "<{}(host={!r}, port={!r})>".format(
            self.__class__.__name__, self.config.host, self.config.port
        )

    @property
    def host(self) -> str:
        return self.config.host

    def _operate(
        self,
        op_name: str,
        path: str,
        options: Dict[str, _PossibleArgumentTypes],
        data: _Data = None,
        stream: bool = False,
        extra: Optional[Dict[str, _PossibleArgumentTypes]] = None,
    ) -> requests.Response:
        """Validate, then run an operation under the retry policy.

        ``extra`` holds parameters the facade itself fills in (e.g. ``destination``).
        """
        op = OPERATIONS[op_name]
        check_options(op, options)
        params = dict(options, **(extra or {}))
        formatted_args = " ".join("{}={}".format(*t) for t in params.items())
        _logger.info("%s %s %s %s", op.name, path, formatted_args, self.config.host)

        rewind: Optional[Callable[[], None]] = None
        replayable = data is None or isinstance(data, (bytes, str))
        if _is_seekable(data):
            # rewind streamed payloads before sending them again
            position = data.tell()  # type: ignore[union-attr]
            rewind = lambda: data.seek(position)  # type: ignore  # noqa: E731
            replayable = True

        return self.retry_policy.call(
            lambda: self.handler.execute(op, path, params, data=data, stream=stream),
            before_retry=rewind,
            replayable=replayable,
        )

    def _json(self, response: requests.Response) -> Dict[str, Any]:
        js = decode_body(response)
        if not isinstance(js, dict):
            raise HdfsException(
                "Expected JSON. Is WebHDFS enabled? Got {!r}".format(response.text)
            )
        return js

    ###################
    # Health checking #
    ###################

    def operational(self) -> bool:
        """Return true if a stat of ``/`` goes through. Errors are raised, not swallowed."""
        op = OPERATIONS["GETFILESTATUS"]
        return bool(self._json(self.handler.execute(op, "/", {})).get("FileStatus"))

    def ensure_operational(self) -> None:
        """Raise if the client cannot talk to HDFS"""
        if not self.operational():
            raise HdfsException("The client isn't working against {}".format(self.host))

    def ensure_keytab_path_set(self) -> None:
        """Raise unless Kerberos is configured with a keytab"""
        if not self.config.kerberos_keytab:
            raise HdfsKerberosError("The kerberos keytab must be set")

    ######################
    # NameNode discovery #
    ######################

    def discover_active_namenode(self) -> str:
        """Return the active NameNode hostname according to the JMX endpoint.

        :raises HdfsJMXUnavailable: no JMX host configured or the lookup failed
        """
        return self.discovery.discover_active_namenode()

    def refresh_from_discovery(self) -> bool:
        """Switch to the active NameNode. Keeps the current host if discovery fails."""
        return self.discovery.refresh_from_discovery()

    #################################
    # File and Directory Operations #
    #################################

    def create(
        self, path: str, data: _Data, **options: _PossibleArgumentTypes
    ) -> bool:
        """Create a file at the given path.

        :param data: ``bytes``, ``str``, a ``file``-like object or an iterator of ``bytes`` to
            upload. The last two are streamed.
        :param overwrite: If a file already exists, should it be overwritten?
        :type overwrite: bool
        :param blocksize: The block size of a file.
        :type blocksize: long
        :param replication: The number of replications of a file.
        :type replication: short
        :param permission: The permission of a file/directory. Any radix-8 integer (leading zeros
            may be omitted.)
        :type permission: octal
        :param buffersize: The size of the buffer used in transferring data.
        :type buffersize: int
        :returns: true if the file was created
        """
        response = self._operate("CREATE", path, options, data=data)
        return response.status_code == 201

    def append(
        self, path: str, data: _Data, **options: _PossibleArgumentTypes
    ) -> bool:
        """Append to the given file.

        :param data: ``bytes``, ``str``, a ``file``-like object or an iterator of ``bytes``
        :param buffersize: The size of the buffer used in transferring data.
        :type buffersize: int
        """
        response = self._operate("APPEND", path, options, data=data)
        return response.status_code == 200

    def read(self, path: str, **options: _PossibleArgumentTypes) -> bytes:
        """Return the contents of the given file.

        :param offset: The starting byte position.
        :type offset: long
        :param length: The number of bytes to be processed.
        :type length: long
        :param buffersize: The size of the buffer used in transferring data.
        :type buffersize: int
        :raises HdfsInvalidOpError: the path exists but cannot be read, e.g. it is a directory
        """
        try:
            return self._operate("OPEN", path, options).content
        except HdfsNotFoundError as e:
            invalid = _invalid_read(e)
            if invalid is None:
                raise
            raise invalid from e

    def open(self, path: str, **options: _PossibleArgumentTypes) -> IO[bytes]:
        """Return a file-like object for reading the given HDFS path without buffering it.

        Takes the same options as :py:meth:`read`.

        :rtype: file-like object
        """
        try:
            response = self._operate("OPEN", path, options, stream=True)
        except HdfsNotFoundError as e:
            invalid = _invalid_read(e)
            if invalid is None:
                raise
            raise invalid from e
        return response.raw  # type: ignore

    def mkdir(self, path: str, **options: _PossibleArgumentTypes) -> bool:
        """Create a directory with the provided permission.

        :param permission: The permission of a file/directory. Any radix-8 integer (leading zeros
            may be omitted.)
        :type permission: octal
        :returns: true if the directory creation succeeds; false otherwise
        """
        return boolean_result(self._operate("MKDIRS", path, options))

    mkdirs = mkdir

    def rename(
        self, path: str, destination: str, **options: _PossibleArgumentTypes
    ) -> bool:
        """Renames Path src to Path dst.

        :returns: true if rename is successful
        """
        response = self._operate(
            "RENAME", path, options, extra={"destination": destination}
        )
        return boolean_result(response)

    def delete(self, path: str, **options: _PossibleArgumentTypes) -> bool:
        """Delete a file.

        :param recursive: If path is a directory and set to true, the directory is deleted else
            throws an exception. In case of a file the recursive can be set to either true or false.
        :type recursive: bool
        :returns: true if delete is successful else false (e.g. the path did not exist).
        """
        return boolean_result(self._operate("DELETE", path, options))

    def stat(self, path: str) -> FileStatus:
        """Return a :py:class:`FileStatus` object that represents the path."""
        js = self._json(self._operate("GETFILESTATUS", path, {}))
        return FileStatus(**js["FileStatus"])

    status = stat
    get_file_status = stat

    def list(self, path: str) -> List[FileStatus]:
        """List the statuses of the files/directories in the given path, in server order.

        :rtype: ``list`` of :py:class:`FileStatus` objects
        """
        js = self._json(self._operate("LISTSTATUS", path, {}))
        return [FileStatus(**item) for item in js["FileStatuses"]["FileStatus"]]

    list_status = list

    ################################
    # Other File System Operations #
    ################################

    def content_summary(self, path: str) -> ContentSummary:
        """Return the :py:class:`ContentSummary` of a given Path."""
        js = self._json(self._operate("GETCONTENTSUMMARY", path, {}))
        data = js["ContentSummary"]
        if "typeQuota" in data:
            data["typeQuota"] = {
                k: TypeQuota(**v) for k, v in data["typeQuota"].items()
            }
        return ContentSummary(**data)

    def checksum(self, path: str) -> FileChecksum:
        """Get the checksum of a file.

        :rtype: :py:class:`FileChecksum`
        """
        js = self._json(self._operate("GETFILECHECKSUM", path, {}))
        return FileChecksum(**js["FileChecksum"])

    def home_directory(self) -> str:
        """Return the current user's home directory in this filesystem."""
        response = self._json(self._operate("GETHOMEDIRECTORY", "/", {}))["Path"]
        assert isinstance(response, str), type(response)
        return response

    homedir = home_directory

    def chmod(self, path: str, mode: Union[int, str]) -> bool:
        """Set permission of a path.

        :param mode: The permission of a file/directory as an octal string, e.g. ``"755"``. An
            ``int`` is taken as the permission bits (``0o755``).
        """
        if isinstance(mode, int):
            mode = "{:o}".format(mode)
        response = self._operate("SETPERMISSION", path, {"permission": mode})
        return response.status_code == 200

    def chown(
        self,
        path: str,
        owner: Optional[str] = None,
        group: Optional[str] = None,
    ) -> bool:
        """Set owner of a path (i.e. a file or a directory).

        The parameters owner and group cannot both be null.
        """
        options: Dict[str, _PossibleArgumentTypes] = {"owner": owner, "group": group}
        require_one_of(OPERATIONS["SETOWNER"], options, ("owner", "group"))
        return self._operate("SETOWNER", path, options).status_code == 200

    def set_replication(self, path: str, replication: int) -> bool:
        """Set replication for an existing file.

        :returns: true if successful; false if file does not exist or is a directory
        """
        response = self._operate("SETREPLICATION", path, {"replication": replication})
        return boolean_result(response)

    replication = set_replication

    def set_times(
        self,
        path: str,
        accesstime: Optional[int] = None,
        modificationtime: Optional[int] = None,
    ) -> bool:
        """Set access and/or modification time of a file.

        :param modificationtime: Set the modification time of this file. The number of milliseconds
            since Jan 1, 1970.
        :type modificationtime: long
        :param accesstime: Set the access time of this file. The number of milliseconds since Jan 1
            1970.
        :type accesstime: long
        """
        options: Dict[str, _PossibleArgumentTypes] = {
            "accesstime": accesstime,
            "modificationtime": modificationtime,
        }
        require_one_of(
            OPERATIONS["SETTIMES"], options, ("accesstime", "modificationtime")
        )
        return self._operate("SETTIMES", path, options).status_code == 200

    touch = set_times

    ######################################################
    # Convenience Methods                                #
    # These are intended to mimic python / hdfs features #
    ######################################################

    def exists(self, path: str) -> bool:
        """Return true if the given path exists"""
        try:
            self.stat(path)
            return True
        except HdfsNotFoundError:
            return False

    def listdir(self, path: str) -> List[str]:
        """Return a list containing names of files in the given path"""
        statuses = self.list(path)
        if (
            len(statuses) == 1
            and statuses[0].pathSuffix == ""
            and statuses[0].type == "FILE"
        ):
            raise NotADirectoryError("Not a directory: {!r}".format(path))
        return [f.pathSuffix for f in statuses]

    list_filenames = listdir

    def walk(
        self,
        top: str,
        topdown: bool = True,
        onerror: Optional[Callable[[HdfsException], None]] = None,
    ) -> Iterator[Tuple[str, List[str], List[str]]]:
        """See ``os.walk`` for documentation"""
        try:
            listing = self.list(top)
        except HdfsException as e:
            if onerror is not None:
                onerror(e)
            return

        dirnames, filenames = [], []
        for f in listing:
            if f.type == "DIRECTORY":
                dirnames.append(f.pathSuffix)
            else:
                filenames.append(f.pathSuffix)

        if topdown:
            yield top, dirnames, filenames
        for name in dirnames:
            new_path = posixpath.join(top, name)
            for x in self.walk(new_path, topdown, onerror):
                yield x
        if not topdown:
            yield top, dirnames, filenames

    def append_or_create(self, path: str, data: Union[bytes, str]) -> bool:
        """Append ``data`` as one line to a file, creating the file first if it does not exist.

        A newline is added after ``data``, so :py:meth:`tip_of_tail` returns the last record.
        """
        if isinstance(data, bytes):
            data += b"\n"
        else:
            data += "\n"
        try:
            self.stat(path)
        except HdfsNotFoundError:
            return self.create(path, data)
        return self.append(path, data)

    def delete_recursive_strict(self, path: str) -> bool:
        """Delete a path and everything below it.

        :raises HdfsNotFoundError: the path does not exist
        """
        self.stat(path)
        return self.delete(path, recursive=True)

    def delete_recursive(self, path: str) -> bool:
        """Like :py:meth:`delete_recursive_strict`, but returns false for a missing path"""
        try:
            return self.delete_recursive_strict(path)
        except HdfsNotFoundError:
            return False

    def move_paths(self, paths: List[str], target_dir: str) -> List[bool]:
        """Move each path into ``target_dir``, one rename at a time"""
        return [
            self.rename(path, posixpath.join(target_dir, posixpath.basename(path)))
            for path in paths
        ]

    def mtime(self, path: str) -> datetime.datetime:
        """Return the modification time of a path"""
        modification_time = self.stat(path).modificationTime
        return datetime.datetime.fromtimestamp(modification_time / 1000)

    def tip_of_tail(self, path: str) -> str:
        """Return the last line of a text file, or an empty string if it has none"""
        lines = self.read(path).decode("utf-8").splitlines()
        return lines[-1] if lines else ""

    def copy_from_local(
        self, localsrc: str, dest: str, **options: _PossibleArgumentTypes
    ) -> bool:
        """Copy a single file from the local file system to ``dest``

        Takes all options that :py:meth:`create` takes.
        """
        with open(localsrc, "rb") as f:
            return self.create(dest, f, **options)

    def copy_to_local(
        self, src: str, localdest: str, **options: _PossibleArgumentTypes
    ) -> None:
        """Copy a single file from ``src`` to the local file system

        Takes all options that :py:meth:`open` takes.
        """
        with self.open(src, **options) as fsrc:
            with open(localdest, "wb") as fdst:
                shutil.copyfileobj(fsrc, fdst)
