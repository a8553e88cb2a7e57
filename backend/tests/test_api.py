"""Tests for the HTTP API and the streaming client."""
import asyncio

import httpx
from fastapi.testclient import TestClient

from nodeflow.api.routes import cancel_workflow as cancel_route
from nodeflow.api.routes import execute_workflow as execute_route
from nodeflow.engine.graph import Node
from nodeflow.engine.session import create_session, get_session, remove_session
from nodeflow.main import app
from nodeflow.models.schemas import ExecuteRequest
from nodeflow.nodes.base import BaseNode, HandleSpec
from nodeflow.nodes.registry import NodeRegistry
from nodeflow.streaming.client import NodeStateTracker, WorkflowExecutionClient
from nodeflow.streaming.events import EventStreamDecoder, StreamError, StreamTransportError
from nodeflow.streaming.server import CANCELLED_MESSAGE

CHAIN_WORKFLOW = {
    "id": "flow-chain",
    "nodes": [
        {"id": "a", "type": "text-input", "config": {"value": "hi"}},
        {"id": "b", "type": "generate-text", "config": {"model": "test-model"}},
    ],
    "edges": [
        {"id": "e1", "source": "a", "sourceHandle": "result", "target": "b", "targetHandle": "prompt"},
    ],
}

UNCONNECTED_WORKFLOW = {
    "nodes": [{"id": "g", "type": "generate-text", "config": {}}],
    "edges": [],
}


def asgi_client():
    return WorkflowExecutionClient(base_url="http://testserver", transport=httpx.ASGITransport(app=app))


class TestRoutes:
    def test_health(self):
        client = TestClient(app)
        assert client.get("/health").json() == {"status": "ok"}

    def test_list_nodes(self):
        client = TestClient(app)
        catalog = client.get("/api/nodes").json()
        assert catalog["generate-text"]["requiredTargetHandles"] == ["prompt"]
        assert catalog["text-input"]["sourceHandles"]["result"]["required"] is False

    def test_validate_editing_mode(self):
        client = TestClient(app)
        response = client.post("/api/workflow/validate", json=UNCONNECTED_WORKFLOW)
        assert response.status_code == 200
        body = response.json()
        assert body["errors"] == []
        assert body["executionOrder"] == ["g"]

    def test_validate_strict_mode(self):
        client = TestClient(app)
        response = client.post("/api/workflow/validate", json={**UNCONNECTED_WORKFLOW, "strict": True})
        errors = response.json()["errors"]
        assert errors == [{
            "type": "missing-required-connection",
            "message": 'Node "g" requires a connection to its "prompt" input.',
            "node": {"id": "g", "handleId": "prompt"},
        }]

    def test_validate_cycle(self):
        client = TestClient(app)
        workflow = {
            "nodes": [{"id": "a", "type": "generate-text"}, {"id": "b", "type": "generate-text"}],
            "edges": [
                {"id": "e1", "source": "a", "sourceHandle": "result", "target": "b", "targetHandle": "prompt"},
                {"id": "e2", "source": "b", "sourceHandle": "result", "target": "a", "targetHandle": "prompt"},
            ],
        }
        body = client.post("/api/workflow/validate", json=workflow).json()
        assert body["executionOrder"] == []
        assert body["errors"][0]["type"] == "cycle"
        assert [e["id"] for e in body["errors"][0]["edges"]] == ["e1", "e2"]

    def test_execute_streams_events(self):
        client = TestClient(app)
        response = client.post("/api/workflow/execute", json={"workflow": CHAIN_WORKFLOW})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        run_id = response.headers["x-run-id"]
        assert run_id and run_id != "flow-chain"

        events = EventStreamDecoder().feed(response.text)
        assert events[-1].type == "complete"
        final = [e for e in events if e.type == "nodeUpdate" and e.node_id == "b"][-1]
        assert final.execution_state.sources["result"].startswith("Generated content using test-model: hi")
        # Session is released once the stream ends
        assert get_session(run_id) is None

    def test_execute_accepts_editor_node_shape(self):
        client = TestClient(app)
        workflow = {
            "nodes": [
                {"id": "a", "type": "text-input", "position": {"x": 0, "y": 0},
                 "data": {"config": {"value": "hi"}}},
                {"id": "v", "type": "visualize-text", "data": {}},
            ],
            "edges": [{"id": "e1", "source": "a", "sourceHandle": "result",
                       "target": "v", "targetHandle": "input"}],
        }
        response = client.post("/api/workflow/execute", json={"workflow": workflow})
        events = EventStreamDecoder().feed(response.text)
        statuses = [(e.node_id, e.execution_state.status.value) for e in events if e.type == "nodeUpdate"]
        assert ("v", "success") in statuses

    def test_execute_refuses_invalid_workflow(self):
        client = TestClient(app)
        response = client.post("/api/workflow/execute", json={"workflow": UNCONNECTED_WORKFLOW})
        assert response.status_code == 422
        assert response.json()["errors"][0]["type"] == "missing-required-connection"

    def test_cancel_unknown_run(self):
        client = TestClient(app)
        assert client.post("/api/workflow/nope/cancel").status_code == 404

    def test_cancel_active_run(self):
        session = create_session("run-1")
        try:
            client = TestClient(app)
            assert client.post("/api/workflow/run-1/cancel").json() == {"status": "cancelled"}
            assert session.controller.cancelled
        finally:
            remove_session("run-1")


class TestRunSessions:
    def test_reruns_of_one_workflow_get_separate_sessions(self):
        async def scenario():
            request = ExecuteRequest.model_validate({"workflow": CHAIN_WORKFLOW})
            first = await execute_route(request)
            second = await execute_route(request)
            first_id, second_id = first.headers["x-run-id"], second.headers["x-run-id"]
            assert first_id != second_id
            assert get_session(first_id) is not get_session(second_id)

            first_records = [record async for record in first.body_iterator]
            # Finishing the first run leaves the second one cancellable
            assert get_session(first_id) is None
            assert get_session(second_id) is not None
            assert await cancel_route(second_id) == {"status": "cancelled"}

            second_records = [record async for record in second.body_iterator]
            assert get_session(second_id) is None
            return first_records, second_records

        first_records, second_records = asyncio.run(scenario())
        assert EventStreamDecoder().feed("".join(first_records))[-1].type == "complete"
        # Cancelled before its first node ran
        events = EventStreamDecoder().feed("".join(second_records))
        assert [e.type for e in events] == ["error"]
        assert events[0].error == CANCELLED_MESSAGE

    def test_cancel_stops_live_stream(self, monkeypatch):
        workflow = {
            "id": "gated",
            "nodes": [
                {"id": "a", "type": "text-input", "config": {"value": "hi"}},
                {"id": "g", "type": "gate"},
                {"id": "v", "type": "visualize-text"},
            ],
            "edges": [
                {"id": "e1", "source": "a", "sourceHandle": "result", "target": "g", "targetHandle": "input"},
                {"id": "e2", "source": "g", "sourceHandle": "result", "target": "v", "targetHandle": "input"},
            ],
        }

        async def scenario():
            release = asyncio.Event()

            class GateNode(BaseNode):
                """Holds its input until the test releases it."""

                @classmethod
                def TARGET_HANDLES(cls):
                    return {"input": HandleSpec()}

                @classmethod
                def SOURCE_HANDLES(cls):
                    return {"result": HandleSpec()}

                async def process(self, node, targets):
                    await release.wait()
                    return {"result": targets["input"]}

            monkeypatch.setitem(NodeRegistry._nodes, "gate", GateNode)
            response = await execute_route(ExecuteRequest.model_validate({"workflow": workflow}))
            run_id = response.headers["x-run-id"]
            stream = response.body_iterator
            decoder = EventStreamDecoder()
            events = []

            async for record in stream:
                events.extend(decoder.feed(record))
                if any(e.type == "nodeUpdate" and e.node_id == "g" for e in events):
                    break

            assert await cancel_route(run_id) == {"status": "cancelled"}
            release.set()
            async for record in stream:
                events.extend(decoder.feed(record))
            assert get_session(run_id) is None
            return events

        events = asyncio.run(scenario())
        updates = [(e.node_id, e.execution_state.status.value) for e in events if e.type == "nodeUpdate"]
        assert updates == [("a", "processing"), ("a", "success"), ("g", "processing"), ("g", "success")]
        assert events[-1].type == "error"
        assert events[-1].error == CANCELLED_MESSAGE
        assert not any(e.type == "complete" for e in events)


class TestWorkflowExecutionClient:
    def test_tracker_receives_full_run(self):
        nodes = [Node(id="a", type="text-input"), Node(id="b", type="generate-text")]
        tracker = NodeStateTracker(nodes)
        asyncio.run(asgi_client().connect(CHAIN_WORKFLOW, tracker))

        assert tracker.errors == []
        assert tracker.completed_at is not None
        assert tracker.status_of("a") == "success"
        assert tracker.status_of("b") == "success"
        assert [u[0] for u in tracker.updates] == ["a", "a", "b", "b"]
        assert nodes[1].execution_state.targets == {"prompt": "hi"}

    def test_refused_run_reported_once(self):
        tracker = NodeStateTracker([])
        asyncio.run(asgi_client().connect(UNCONNECTED_WORKFLOW, tracker))

        assert len(tracker.errors) == 1
        error = tracker.errors[0]
        assert isinstance(error, StreamTransportError)
        assert error.status_code == 422
        assert error.errors[0]["node"]["handleId"] == "prompt"
        assert tracker.completed_at is None

    def test_malformed_stream(self):
        def handler(request):
            return httpx.Response(
                200, headers={"content-type": "text/event-stream"}, text="data: {oops}\n\n",
            )

        client = WorkflowExecutionClient(base_url="http://testserver", transport=httpx.MockTransport(handler))
        tracker = NodeStateTracker([])
        asyncio.run(client.connect(CHAIN_WORKFLOW, tracker))
        assert len(tracker.errors) == 1
        assert isinstance(tracker.errors[0], StreamError)

    def test_server_error_event(self):
        def handler(request):
            return httpx.Response(200, text='data: {"type": "error", "error": "engine down"}\n\n')

        client = WorkflowExecutionClient(base_url="http://testserver", transport=httpx.MockTransport(handler))
        tracker = NodeStateTracker([])
        asyncio.run(client.connect(CHAIN_WORKFLOW, tracker))
        assert [str(e) for e in tracker.errors] == ["engine down"]

    def test_connection_failure(self):
        def handler(request):
            raise httpx.ConnectError("refused")

        client = WorkflowExecutionClient(base_url="http://testserver", transport=httpx.MockTransport(handler))
        tracker = NodeStateTracker([])
        asyncio.run(client.connect(CHAIN_WORKFLOW, tracker))
        assert len(tracker.errors) == 1
        assert isinstance(tracker.errors[0], StreamTransportError)

    def test_disconnect_from_handler(self):
        client = asgi_client()

        class StopAfterFirst(NodeStateTracker):
            def on_node_update(self, node_id, state):
                super().on_node_update(node_id, state)
                client.disconnect()

        tracker = StopAfterFirst([])
        asyncio.run(client.connect(CHAIN_WORKFLOW, tracker))
        assert tracker.errors == []
        assert tracker.completed_at is None
        assert len(tracker.updates) == 1
