"""
Limited support reason deletion.

Builds the DELETE request for a cluster's limited support reason, checks
the reply from OCM and drives the whole command flow in run_delete().
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import requests
import typer
from pydantic import BaseModel, Field, ValidationError

from .ocm import CLUSTERS_PATH, Cluster, OCMConnection, OCMConnectionError, get_ocm_token

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "Limited support reason deleted successfully"

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_BAD_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _reject_constant(name: str):
    raise ValueError(f"invalid JSON constant {name}")


class SupportError(Exception):
    """Base exception for limited support reason operations."""
    pass

class PathConstructionError(SupportError):
    """Exception raised when the API path can't be applied to a request."""
    pass

class DeleteCheckError(SupportError):
    """Exception raised when the reply to a delete call can't be understood."""
    pass


class BadReply(BaseModel):
    """Error body returned by OCM for a failed call."""
    kind: Optional[str] = Field(default=None, description="Always 'Error'")
    id: Optional[str] = Field(default=None, description="Numeric error identifier")
    href: Optional[str] = Field(default=None, description="Link to the error description")
    code: Optional[str] = Field(default=None, description="Error code, e.g. CLUSTERS-MGMT-404")
    reason: Optional[str] = Field(default=None, description="Human readable reason")
    operation_id: Optional[str] = Field(default=None, description="Request identifier for support")
    details: Optional[List[Dict[str, Any]]] = None


@dataclass(frozen=True)
class DeleteRequest:
    path: str
    params: Dict[str, List[str]] = field(default_factory=dict)
    method: str = "DELETE"


@dataclass
class DeleteOptions:
    cluster_id: str
    limited_support_reason_id: str
    dry_run: bool = False
    verbose: bool = False


def parse_path_arg(value: str) -> Tuple[str, Dict[str, List[str]]]:
    """Split an API path argument into its path and query parameters.

    Raises:
        ValueError: If the value is not a valid URL reference
    """
    if _CONTROL_CHARS.search(value):
        raise ValueError("invalid control character in URL")
    match = _BAD_ESCAPE.search(value)
    if match:
        raise ValueError(f"invalid URL escape {value[match.start():match.start() + 3]!r}")

    parts = urlsplit(value)
    params: Dict[str, List[str]] = {}
    for name, param in parse_qsl(parts.query, keep_blank_values=True):
        params.setdefault(name, []).append(param)
    return parts.path, params


def create_delete_request(cluster: Cluster, reason_id: str) -> DeleteRequest:
    """Build the DELETE request for one limited support reason of a cluster."""
    target_api_path = f"{CLUSTERS_PATH}/{cluster.id}/limited_support_reasons/{reason_id}"
    try:
        path, params = parse_path_arg(target_api_path)
    except ValueError as e:
        raise PathConstructionError(f"cannot parse API path '{target_api_path}': {e}") from e
    return DeleteRequest(path=path, params=params)


def check_delete(response: requests.Response, echo: Callable[[str], Any] = typer.echo) -> None:
    """
    Check the reply to a delete call.

    204 means the reason is gone. Any other reply is expected to carry an
    OCM error body; a well formed one is logged and not treated as a failure.

    Raises:
        DeleteCheckError: If the reply body is not valid JSON or not an error body
    """
    if response.status_code == requests.codes.no_content:
        echo(SUCCESS_MESSAGE)
        return

    try:
        body = json.loads(response.content, parse_constant=_reject_constant)
    except ValueError:
        raise DeleteCheckError("server returned invalid JSON")

    if body is None:
        logger.warning(f"Delete call returned status {response.status_code} with an empty error body")
        return

    try:
        bad_reply = BadReply.model_validate(body)
    except ValidationError as e:
        raise DeleteCheckError(f"cannot parse the error JSON message: {str(e)!r}") from e

    logger.warning(
        f"Delete call returned status {response.status_code}: "
        f"code={bad_reply.code} reason={bad_reply.reason} operation_id={bad_reply.operation_id}"
    )


def confirm_send() -> bool:
    """Ask the user whether to go on. Invalid answers are asked again."""
    return typer.confirm("Continue?", default=False)


def run_delete(
    options: DeleteOptions,
    connect: Callable[[str], OCMConnection] = OCMConnection,
    confirm: Callable[[], bool] = confirm_send,
    echo: Callable[[str], Any] = typer.echo,
) -> None:
    """
    Delete a limited support reason from a cluster.

    Token and connection problems and a failed cluster lookup raise OCMError
    subclasses. Problems with the delete call itself are reported through
    echo and the function returns normally.
    """
    token = get_ocm_token()
    with connect(token) as connection:
        if options.dry_run:
            logger.info(
                f"Dry run: not deleting limited support reason "
                f"'{options.limited_support_reason_id}' from cluster '{options.cluster_id}'"
            )
            return

        if not confirm():
            echo("Exiting...")
            return

        cluster = connection.get_cluster(options.cluster_id)

        try:
            request = create_delete_request(cluster, options.limited_support_reason_id)
        except PathConstructionError as e:
            echo(f"failed post call {str(e)!r}")
            return

        if options.verbose:
            echo(f"{request.method} {request.path}")

        try:
            response = connection.send(request)
        except OCMConnectionError as e:
            echo(f"Failed to get delete call response: {str(e)!r}")
            return

        try:
            check_delete(response, echo=echo)
        except DeleteCheckError as e:
            echo(f"check for delete call failed: {str(e)!r}")
