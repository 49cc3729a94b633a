import pytest

from conductor_provisioner.core.conductor_client import (
    ClientOptions,
    ConductorClient,
    TransportError,
    _redact,
)


def _authed(conductor, plan_only=False):
    return ConductorClient(conductor.api_url, plan_only=plan_only).with_credential(conductor.token)


def test_plan_mode_suppresses_mutations(conductor, caplog):
    client = _authed(conductor, plan_only=True)

    with caplog.at_level("INFO"):
        resp = client.post_json("metadata/workflow", {"name": "wf"}, params={"overwrite": "false"})
        text = client.post_text("prompts/p", "hello", expect="text")
        put = client.request("PUT", "metadata/taskdefs", json_body=[])

    assert resp == {} and text == "" and put == {}
    assert conductor.mutations() == []
    assert f"[PLAN] POST {conductor.api_url}/metadata/workflow" in caplog.text
    assert f"[PLAN] PUT {conductor.api_url}/metadata/taskdefs" in caplog.text


def test_plan_mode_lets_reads_and_token_exchange_through(conductor):
    client = ConductorClient(conductor.api_url, plan_only=True)
    resp = client.post_json("token", {"keyId": "kid", "keySecret": "ksecret"})
    assert resp == {"token": conductor.token}

    authed = client.with_credential(resp["token"])
    assert authed.request("GET", "version", expect="text") == "5.1.0"
    assert [c["path"] for c in conductor.handler.calls] == ["/api/token", "/api/version"]


def test_allowed_in_plan():
    assert ConductorClient.allowed_in_plan("GET", "http://h/api/metadata/workflow/x")
    assert ConductorClient.allowed_in_plan("POST", "http://h/api/token")
    assert ConductorClient.allowed_in_plan("POST", "http://h/api/token/")
    assert not ConductorClient.allowed_in_plan("POST", "http://h/api/token/userInfo")
    assert not ConductorClient.allowed_in_plan("POST", "http://h/api/prompts/token")
    assert not ConductorClient.allowed_in_plan("DELETE", "http://h/api/token")


def test_with_credential_returns_a_new_client(conductor):
    base = ConductorClient(conductor.api_url)
    authed = base.with_credential(conductor.token)

    assert not base.authenticated
    assert authed.authenticated
    assert authed.session.headers["X-Authorization"] == conductor.token
    assert authed.session.headers["Accept"] == "*/*"
    assert base.with_credential("").authenticated is False


def test_probe_reports_found_missing_and_inconclusive(conductor):
    conductor.state["taskdefs"].add("t1")
    conductor.handler.fail.add(("GET", "metadata/taskdefs/t3"))
    client = _authed(conductor)

    found = client.probe("metadata/taskdefs/t1")
    missing = client.probe("metadata/taskdefs/t2")
    broken = client.probe("metadata/taskdefs/t3")

    assert found.found and not found.inconclusive
    assert missing.not_found and not missing.found
    assert broken.inconclusive and broken.status == 500
    assert ConductorClient(conductor.api_url).probe("metadata/taskdefs/t1").status == 401


def test_probe_network_failure_never_raises():
    client = ConductorClient("http://127.0.0.1:9/api", options=ClientOptions(timeout_sec=2))
    res = client.probe("metadata/workflow/x")
    assert res.status == 0
    assert res.inconclusive
    assert isinstance(res.error, TransportError)


def test_unexpected_status_raises_transport_error(conductor):
    conductor.handler.fail.add(("POST", "metadata/workflow"))
    client = _authed(conductor)

    with pytest.raises(TransportError) as ei:
        client.post_json("metadata/workflow", {"name": "wf"}, ok_statuses=(200, 204))

    assert ei.value.status == 500
    assert ei.value.method == "POST"
    assert "boom" in ei.value.body
    assert "HTTP 500 POST" in str(ei.value)


def test_connection_error_is_wrapped():
    client = ConductorClient("http://127.0.0.1:9/api", options=ClientOptions(timeout_sec=2))
    with pytest.raises(TransportError) as ei:
        client.get_json("version")
    assert ei.value.status == 0


def test_text_body_is_sent_verbatim_as_json_content_type(conductor):
    client = _authed(conductor)
    client.post_text("prompts/Greeter", "Say hi to ${name}", params={"models": "openai:gpt-4o-mini"}, expect="text")

    call = conductor.handler.calls[-1]
    assert call["body"] == "Say hi to ${name}"
    assert call["content_type"].startswith("application/json")
    assert call["query"] == {"models": "openai:gpt-4o-mini"}
    assert conductor.state["prompts"]["Greeter"] == "Say hi to ${name}"


def test_json_decoding_variants(conductor):
    client = _authed(conductor)
    assert client.get_json("token/userInfo")["id"] == "dev@example.com"
    assert client.get_json("version") == {"_raw": "5.1.0"}
    assert client.post_json("metadata/taskdefs", [{"name": "x"}]) == {}


def test_redact_masks_secret_keys():
    out = _redact({"keyId": "k", "keySecret": "s", "configuration": {"api_key": "sk-1"}})
    assert out["keyId"] == "k"
    assert out["keySecret"] == "***REDACTED***"
    assert out["configuration"]["api_key"] == "***REDACTED***"
