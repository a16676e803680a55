import base64
import json

import msgpack
import pytest
from fastapi.testclient import TestClient

from shaperunner import main as main_module
from shaperunner.agents.llm.base import LLMClient, ModelTimeoutError, TransportError
from shaperunner.agents.orchestrator import ParseFailure, ShapeOrchestrator
from shaperunner.main import create_app
from shaperunner.rpc.codec import CodecError, JsonCodec, MsgPackCodec, get_codec
from shaperunner.rpc.dispatcher import (
    InvalidPayloadError,
    OutputEncodingError,
    ShapeDispatcher,
    UnknownTaskError,
)
from shaperunner.settings import Settings
from shaperunner.shapes.schemas import FeatureDesignInput, FeatureDesignOutput


class FixedOrchestrator:
    """Skips the model and hands back a prepared output."""

    def __init__(self, output):
        self.output = output

    def run(self, task, task_input):
        return self.output


def unencodable_output():
    # model_construct skips validation, so the lone surrogate survives into the record
    return FeatureDesignOutput.model_construct(name="\ud800", rationale="r", components=[], risks=[])


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


class TestCodecs:
    def test_msgpack_is_a_named_map(self):
        data = MsgPackCodec().encode(FeatureDesignInput(repo_summary="x", constraints=["a"]))
        assert msgpack.unpackb(data) == {"repo_summary": "x", "constraints": ["a"]}

    def test_msgpack_decode(self):
        data = msgpack.packb({"repo_summary": "x", "constraints": []})
        assert MsgPackCodec().decode(data, FeatureDesignInput) == FeatureDesignInput(repo_summary="x")

    def test_json_codec(self):
        data = JsonCodec().encode(FeatureDesignInput(repo_summary="x"))
        assert json.loads(data) == {"repo_summary": "x", "constraints": []}

    @pytest.mark.parametrize("data", [b"\xc1", msgpack.packb([1, 2]), msgpack.packb({"constraints": []})])
    def test_bad_msgpack_payloads(self, data):
        with pytest.raises(CodecError):
            MsgPackCodec().decode(data, FeatureDesignInput)

    def test_unknown_encoding(self):
        with pytest.raises(CodecError):
            get_codec("xml")

    def test_unencodable_output(self):
        with pytest.raises(CodecError):
            MsgPackCodec().encode(unencodable_output())


class TestDispatcher:
    def test_unknown_task_rejected_before_model_call(self, scripted_llm):
        llm = scripted_llm(["unused"])
        dispatcher = ShapeDispatcher(ShapeOrchestrator(llm))

        with pytest.raises(UnknownTaskError):
            dispatcher.run("Poem", msgpack.packb({}))
        assert llm.prompts == []

    def test_bad_payload_rejected_before_model_call(self, scripted_llm):
        llm = scripted_llm(["unused"])
        dispatcher = ShapeDispatcher(ShapeOrchestrator(llm))

        with pytest.raises(InvalidPayloadError, match="decode input failed"):
            dispatcher.run("Formation", msgpack.packb({"formation_description": "x", "unit_count": 0}))
        assert llm.prompts == []

    def test_round_trip(self, scripted_llm, feature_design_doc):
        dispatcher = ShapeDispatcher(ShapeOrchestrator(scripted_llm([json.dumps(feature_design_doc)])))

        out = dispatcher.run("FeatureDesign", msgpack.packb({"repo_summary": "x", "constraints": []}))

        assert msgpack.unpackb(out) == feature_design_doc

    def test_lists_tasks(self, scripted_llm):
        assert ShapeDispatcher(ShapeOrchestrator(scripted_llm(["x"]))).tasks() == ["FeatureDesign", "Formation"]

    def test_encode_failure_is_a_dispatch_error(self):
        dispatcher = ShapeDispatcher(FixedOrchestrator(unencodable_output()))

        with pytest.raises(OutputEncodingError, match="encode output failed"):
            dispatcher.run("FeatureDesign", msgpack.packb({"repo_summary": "x", "constraints": []}))


def make_client(llm, **settings):
    app = create_app(settings=Settings(**settings), llm=llm)
    return TestClient(app)


class TestRunEndpoint:
    def test_feature_design_end_to_end(self, scripted_llm, feature_design_doc):
        llm = scripted_llm([json.dumps(feature_design_doc)])
        client = make_client(llm)
        payload = MsgPackCodec().encode(FeatureDesignInput(repo_summary="x", constraints=[]))

        r = client.post("/run", json={"task_id": "FeatureDesign", "input": b64(payload)})

        assert r.status_code == 200
        body = r.json()
        assert body["ok"] is True
        assert body["error"] == ""
        out = MsgPackCodec().decode(base64.b64decode(body["output"]), FeatureDesignOutput)
        assert out.model_dump() == feature_design_doc
        assert len(llm.prompts) == 1

    def test_json_encoding_for_debugging(self, scripted_llm):
        llm = scripted_llm([json.dumps({"coordinates": [{"x": 1, "y": 2}]})])
        client = make_client(llm)
        payload = json.dumps({"formation_description": "dot", "unit_count": 1}).encode()

        r = client.post("/run", json={"task_id": "Formation", "input": b64(payload), "encoding": "json"})

        assert r.status_code == 200
        assert json.loads(base64.b64decode(r.json()["output"])) == {"coordinates": [{"x": 1.0, "y": 2.0}]}

    def test_unknown_task_is_not_found(self, scripted_llm):
        llm = scripted_llm(["unused"])
        r = make_client(llm).post("/run", json={"task_id": "Nope", "input": b64(b"\x80")})

        assert r.status_code == 404
        assert r.json()["ok"] is False
        assert "Nope" in r.json()["error"]
        assert llm.prompts == []

    def test_bad_payload_is_bad_request(self, scripted_llm):
        r = make_client(scripted_llm(["unused"])).post(
            "/run", json={"task_id": "FeatureDesign", "input": b64(b"\xc1")}
        )
        assert r.status_code == 400
        assert r.json()["ok"] is False

    def test_exhausted_attempts(self, scripted_llm):
        llm = scripted_llm(["not json"])
        payload = msgpack.packb({"repo_summary": "x", "constraints": []})

        r = make_client(llm).post("/run", json={"task_id": "FeatureDesign", "input": b64(payload)})

        assert r.status_code == 500
        assert r.json()["ok"] is False
        assert "after 3 attempts" in r.json()["error"]
        assert len(llm.prompts) == 3

    def test_transport_error(self, scripted_llm):
        payload = msgpack.packb({"repo_summary": "x", "constraints": []})
        r = make_client(scripted_llm([TransportError("refused")])).post(
            "/run", json={"task_id": "FeatureDesign", "input": b64(payload)}
        )
        assert r.status_code == 502
        assert "refused" in r.json()["error"]

    def test_timeout(self, scripted_llm):
        payload = msgpack.packb({"repo_summary": "x", "constraints": []})
        r = make_client(scripted_llm([ModelTimeoutError("slow")]), request_timeout_seconds=5).post(
            "/run", json={"task_id": "FeatureDesign", "input": b64(payload)}
        )
        assert r.status_code == 504
        assert r.json()["ok"] is False

    def test_list_tasks(self, scripted_llm):
        r = make_client(scripted_llm(["x"])).get("/tasks")
        assert r.json() == {"tasks": ["FeatureDesign", "Formation"]}

    def test_attempt_observer(self, scripted_llm, feature_design_doc):
        events = []
        llm = scripted_llm(["nope", json.dumps(feature_design_doc)])
        app = create_app(settings=Settings(), llm=llm, on_attempt=events.append)
        payload = msgpack.packb({"repo_summary": "x", "constraints": []})

        TestClient(app).post("/run", json={"task_id": "FeatureDesign", "input": b64(payload)})

        assert [(e.task_id, e.attempt) for e in events] == [("FeatureDesign", 1), ("FeatureDesign", 2)]


def test_parse_failure_message_carries_parser_diagnostic():
    err = ParseFailure("Expecting value: line 1 column 1 (char 0)", 3)
    assert "Expecting value" in str(err)
    assert err.attempts == 3


class TestEncodeFailureEndpoint:
    def test_unencodable_output_is_a_failure_response(self, scripted_llm):
        app = create_app(settings=Settings(), llm=scripted_llm(["unused"]))
        app.state.dispatcher = ShapeDispatcher(FixedOrchestrator(unencodable_output()))
        payload = msgpack.packb({"repo_summary": "x", "constraints": []})

        r = TestClient(app).post("/run", json={"task_id": "FeatureDesign", "input": b64(payload)})

        assert r.status_code == 500
        assert r.json()["ok"] is False
        assert "encode output failed" in r.json()["error"]


class ClosingLLM(LLMClient):
    def __init__(self):
        self.closed = 0

    def generate_text(self, prompt, *, timeout=None):
        return "{}"

    def close(self):
        self.closed += 1


class TestAppLifespan:
    def test_owned_client_closed_on_shutdown(self, monkeypatch):
        llm = ClosingLLM()
        monkeypatch.setattr(main_module, "get_llm_client", lambda settings: llm)

        with TestClient(create_app(settings=Settings())):
            assert llm.closed == 0

        assert llm.closed == 1

    def test_injected_client_left_open(self):
        llm = ClosingLLM()

        with TestClient(create_app(settings=Settings(), llm=llm)):
            pass

        assert llm.closed == 0
