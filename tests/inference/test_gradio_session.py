"""
GradioSession on gradio_client, with a fake Space.
"""
import os

import httpx
import pytest
from gradio_client.exceptions import AppError

from app.core.errors import InferenceError
from app.services.inference import FileBlob, GradioSession, RemoteFile

from tests.inference.fake_space import FakeSpace

SPACE = "Qlozet/hybrid_body_measurement_mask"


@pytest.fixture
def space():
    fake = FakeSpace()
    with fake.patch():
        yield fake


def _session(**kwargs) -> GradioSession:
    return GradioSession(SPACE, httpx.Client(), **kwargs)


def test_call_lays_out_inputs_and_sends_files(space):
    session = _session()

    outputs = session.call(
        "/run_predict",
        {"front_image": FileBlob(b"img", "image/png", "front.png"), "gender": "female", "height_cm": 170},
    )

    assert outputs == list(space.outputs)
    args, api_name = space.submitted[0]
    assert api_name == "/run_predict"
    assert args[0] == "Hybrid (CNN+Tabular)"
    assert args[1]["meta"] == {"_type": "gradio.FileData"}
    assert args[1]["path"].endswith(".png")
    assert args[2:] == [None, 170, 0, "female"]
    assert space.uploaded == [b"img"]
    assert not os.path.exists(args[1]["path"])


def test_single_output_is_wrapped(space):
    space.outputs = {"path": "/tmp/gradio/avatar.glb", "url": "https://space.example/file=avatar.glb"}
    session = _session()
    outputs = session.call("/_avatar_from_last_preds", {"out_json_path": FileBlob(b"{}", "application/json")})
    assert outputs == [space.outputs]


def test_session_starts_once(space):
    session = _session()
    session.call("/run_predict", {"front_image": "x"})
    session.call("/run_predict", {"front_image": "y"})
    assert len(space.clients) == 1
    assert session.started


def test_client_options(space):
    _session(hf_token="hf_x", timeout=60).start()
    src, kwargs = space.clients[0]
    assert src == SPACE
    assert kwargs["hf_token"] == "hf_x"
    assert kwargs["download_files"] is False


def test_src_override_is_used(space):
    _session(src="https://space.example").start()
    assert space.clients[0][0] == "https://space.example"


def test_unknown_input_is_rejected(space):
    with pytest.raises(InferenceError, match="unexpected inputs"):
        _session().call("/run_predict", {"front": "x"})
    assert space.submitted == []


def test_unknown_endpoint_is_rejected(space):
    with pytest.raises(InferenceError, match="no endpoint"):
        _session().call("/nope", {})


def test_app_error_becomes_inference_error(space):
    space.error = AppError("CUDA out of memory")
    with pytest.raises(InferenceError, match="CUDA out of memory") as exc:
        _session().call("/run_predict", {"front_image": "x"})
    assert exc.value.detail["endpoint"] == "/run_predict"


def test_http_error_carries_status(space):
    request = httpx.Request("POST", "https://space.example/gradio_api/queue/join")
    space.error = httpx.HTTPStatusError("503", request=request, response=httpx.Response(503, request=request))
    with pytest.raises(InferenceError) as exc:
        _session().call("/run_predict", {"front_image": "x"})
    assert exc.value.detail["http_status"] == 503


def test_timeout_cancels_job(space):
    space.error = TimeoutError()
    with pytest.raises(InferenceError, match="timed out"):
        _session(timeout=1).call("/run_predict", {"front_image": "x"})
    assert space.jobs[0].cancelled


def test_unreachable_space_becomes_inference_error():
    fake = FakeSpace(connect_error=ValueError("Could not fetch config for https://space.example"))
    with fake.patch():
        session = _session()
        with pytest.raises(InferenceError, match="could not connect"):
            session.call("/run_predict", {})
        assert not session.started


def test_download_remote_file():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, content=b"GLB-BYTES")

    session = GradioSession(SPACE, httpx.Client(transport=httpx.MockTransport(handler)), hf_token="hf_x")
    remote = RemoteFile(path="/tmp/gradio/avatar.glb", url="https://space.example/file=avatar.glb")
    assert session.download(remote) == b"GLB-BYTES"
    assert seen[0].headers["authorization"] == "Bearer hf_x"


def test_download_without_url_fails():
    session = GradioSession(SPACE, httpx.Client())
    with pytest.raises(InferenceError, match="has no url"):
        session.download(RemoteFile(path="/tmp/gradio/avatar.glb"))
