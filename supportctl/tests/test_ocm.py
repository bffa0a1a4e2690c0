import subprocess
from unittest import mock

import pytest
import requests

from supportctl.modules import ocm
from supportctl.modules.ocm import (
    Cluster,
    OCMAuthenticationError,
    OCMConnection,
    OCMConnectionError,
    OCMError,
    OCMObjectNotFoundError,
    get_ocm_token,
)


def make_response(status, content=b""):
    response = requests.Response()
    response.status_code = status
    response._content = content
    return response


def make_session(*responses):
    session = mock.Mock()
    session.headers = {}
    session.request.side_effect = list(responses)
    return session


def test_token_from_environment():
    runner = mock.Mock()
    assert get_ocm_token(env={"OCM_TOKEN": "abc"}, runner=runner) == "abc"
    runner.assert_not_called()

def test_token_from_ocm_cli():
    runner = mock.Mock(return_value=subprocess.CompletedProcess(["ocm", "token"], 0, stdout="xyz\n"))
    assert get_ocm_token(env={}, runner=runner) == "xyz"
    args, kwargs = runner.call_args
    assert args[0][-1] == "token"
    assert kwargs["check"] is True

def test_blank_env_token_falls_back_to_cli():
    runner = mock.Mock(return_value=subprocess.CompletedProcess(["ocm", "token"], 0, stdout="xyz"))
    assert get_ocm_token(env={"OCM_TOKEN": "  "}, runner=runner) == "xyz"

@pytest.mark.parametrize("error", [
    FileNotFoundError("ocm"),
    subprocess.CalledProcessError(1, ["ocm", "token"]),
])
def test_token_missing(error):
    runner = mock.Mock(side_effect=error)
    with pytest.raises(OCMAuthenticationError, match="OCM token not set"):
        get_ocm_token(env={}, runner=runner)

def test_token_empty_cli_output():
    runner = mock.Mock(return_value=subprocess.CompletedProcess(["ocm", "token"], 0, stdout=""))
    with pytest.raises(OCMAuthenticationError):
        get_ocm_token(env={}, runner=runner)


@pytest.mark.parametrize("token", ["", "abc def", "abc\n", "t\u00f6ken", "\u4ee4\u724c"])
def test_connection_rejects_bad_token(token):
    with pytest.raises(OCMConnectionError, match="Can't build connection"):
        OCMConnection(token, session=make_session())

def test_connection_rejects_bad_url():
    with pytest.raises(OCMConnectionError, match="invalid API URL"):
        OCMConnection("abc", url="api.openshift.com", session=make_session())

def test_connection_sets_bearer_header():
    session = make_session()
    OCMConnection("abc", session=session)
    assert session.headers["Authorization"] == "Bearer abc"

def test_connection_closes_on_error():
    session = make_session()
    with pytest.raises(RuntimeError):
        with OCMConnection("abc", session=session) as connection:
            raise RuntimeError("boom")
    assert connection.closed
    session.close.assert_called_once()

def test_close_is_idempotent():
    session = make_session()
    connection = OCMConnection("abc", session=session)
    connection.close()
    connection.close()
    session.close.assert_called_once()

def test_closed_connection_refuses_requests():
    connection = OCMConnection("abc", session=make_session())
    connection.close()
    with pytest.raises(OCMConnectionError):
        connection.get_cluster("c1")


def test_get_cluster():
    session = make_session(make_response(200, b'{"id": "c1", "name": "demo", "external_id": "e1"}'))
    connection = OCMConnection("abc", url="https://ocm.example.com/", timeout=5, session=session)

    cluster = connection.get_cluster("c1")

    assert cluster == Cluster(id="c1", name="demo", external_id="e1")
    session.request.assert_called_once_with(
        "GET",
        "https://ocm.example.com/api/clusters_mgmt/v1/clusters/c1",
        params=None,
        timeout=5,
    )

@pytest.mark.parametrize("status,error", [
    (401, OCMAuthenticationError),
    (403, OCMAuthenticationError),
    (404, OCMObjectNotFoundError),
])
def test_get_cluster_errors(status, error):
    body = b'{"kind": "Error", "code": "CLUSTERS-MGMT-%d", "reason": "nope"}' % status
    connection = OCMConnection("abc", session=make_session(make_response(status, body)))
    with pytest.raises(error, match="Can't retrieve cluster: status is %d" % status):
        connection.get_cluster("c1")

def test_get_cluster_server_error():
    connection = OCMConnection("abc", session=make_session(make_response(500, b"oops")))
    with pytest.raises(OCMError) as excinfo:
        connection.get_cluster("c1")
    assert type(excinfo.value) is OCMError
    assert "status is 500" in str(excinfo.value)

def test_get_cluster_transport_error():
    session = make_session(requests.ConnectionError("refused"))
    connection = OCMConnection("abc", session=session)
    with pytest.raises(OCMConnectionError, match="refused"):
        connection.get_cluster("c1")

def test_get_cluster_without_id():
    connection = OCMConnection("abc", session=make_session(make_response(200, b"{}")))
    with pytest.raises(OCMError, match="no cluster ID"):
        connection.get_cluster("c1")


def test_send_passes_params():
    session = make_session(make_response(204))
    connection = OCMConnection("abc", session=session)
    request = mock.Mock(method="DELETE", path="/api/x", params={"a": ["1"]})

    assert connection.send(request).status_code == 204
    session.request.assert_called_once_with(
        "DELETE", f"{ocm.Config.OCM_URL.rstrip('/')}/api/x",
        params={"a": ["1"]}, timeout=ocm.Config.API_TIMEOUT,
    )

def test_send_transport_error():
    session = make_session(requests.Timeout("slow"))
    connection = OCMConnection("abc", session=session)
    request = mock.Mock(method="DELETE", path="/api/x", params={})
    with pytest.raises(OCMConnectionError, match="DELETE /api/x failed"):
        connection.send(request)
