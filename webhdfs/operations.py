"""The WebHDFS operations this client speaks, and the options each one accepts"""
from types import MappingProxyType
from typing import Any
from typing import FrozenSet
from typing import Iterable
from typing import Mapping
from typing import NamedTuple

from webhdfs.exceptions import HdfsValidationError


class Operation(NamedTuple):
    """
    :param name: The value of the ``op`` query parameter.
    :param method: HTTP verb.
    :param options: Option keys callers may pass along.
    :param redirected: Whether the NameNode answers with a redirect to a DataNode.
    """

    name: str
    method: str
    options: FrozenSet[str]
    redirected: bool = False


def _table(*operations: Operation) -> Mapping[str, Operation]:
    return MappingProxyType({op.name: op for op in operations})


OPERATIONS: Mapping[str, Operation] = _table(
    Operation(
        "CREATE",
        "PUT",
        frozenset(
            {"overwrite", "blocksize", "replication", "permission", "buffersize"}
        ),
        redirected=True,
    ),
    Operation("APPEND", "POST", frozenset({"buffersize"}), redirected=True),
    Operation(
        "OPEN", "GET", frozenset({"offset", "length", "buffersize"}), redirected=True
    ),
    Operation("MKDIRS", "PUT", frozenset({"permission"})),
    Operation("RENAME", "PUT", frozenset({"destination"})),
    Operation("DELETE", "DELETE", frozenset({"recursive"})),
    Operation("GETFILESTATUS", "GET", frozenset()),
    Operation("LISTSTATUS", "GET", frozenset()),
    Operation("GETCONTENTSUMMARY", "GET", frozenset()),
    Operation("GETFILECHECKSUM", "GET", frozenset(), redirected=True),
    Operation("GETHOMEDIRECTORY", "GET", frozenset()),
    Operation("SETPERMISSION", "PUT", frozenset({"permission"})),
    Operation("SETOWNER", "PUT", frozenset({"owner", "group"})),
    Operation("SETREPLICATION", "PUT", frozenset({"replication"})),
    Operation("SETTIMES", "PUT", frozenset({"modificationtime", "accesstime"})),
)


def check_options(op: Operation, options: Mapping[str, Any]) -> None:
    """Reject option keys the operation does not declare.

    Keys must be lowercase strings. Anything else (including ``"Overwrite"``) is an error rather
    than being silently normalized.

    :raises HdfsValidationError: on the first bad key set
    """
    bad = sorted(
        repr(key)
        for key in options
        if not isinstance(key, str) or key != key.lower() or key not in op.options
    )
    if bad:
        raise HdfsValidationError(
            "No such option for {}: {}".format(op.name, ", ".join(bad))
        )


def require_one_of(
    op: Operation, options: Mapping[str, Any], keys: Iterable[str]
) -> None:
    """Require that at least one of ``keys`` is present with a non-None value"""
    keys = list(keys)
    if all(options.get(key) is None for key in keys):
        raise HdfsValidationError(
            "{} requires at least one of: {}".format(op.name, ", ".join(keys))
        )
