"""API tests over in-memory SQLite with mocked LLM, Redis and Celery."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from behaviorlab.db.experiment_store import SqlExperimentStore
from behaviorlab.evaluation.types import Experiment, ScoringRubric

from conftest import make_response

GRAPH = {
    "nodes": [
        {
            "id": "seqState_0",
            "data": {
                "id": "seqState_0",
                "name": "seqState",
                "inputs": {"stateMemoryUI": json.dumps([{"key": "brand", "defaultValue": "Acme"}])},
            },
        },
        {
            "id": "llm_0",
            "data": {
                "id": "llm_0",
                "label": "Greeter",
                "type": "LLMNode",
                "inputs": {"systemMessagePrompt": "You greet leads for {brand}."},
            },
        },
    ],
}


async def _create_agent(client: AsyncClient) -> str:
    response = await client.post("/api/v1/agents", json={
        "name": "Sales agent",
        "api_url": "https://agent.example.com/api/v1/prediction/abc",
        "graph": GRAPH,
    })
    assert response.status_code == 201
    return response.json()["id"]


async def _create_test(client: AsyncClient, mock_llm: AsyncMock, agent_id: str) -> str:
    mock_llm.chat.return_value = make_response(json.dumps({
        "scorerPrompt": "Did the agent mention refunds? {{conversation}}",
        "testName": "Refund Mention",
        "personaHint": "Unhappy customers",
    }))
    response = await client.post(f"/api/v1/agents/{agent_id}/behavior-tests", json={
        "problem_description": "Agent must mention the refund policy",
        "simulation_count": 4,
    })
    assert response.status_code == 201
    return response.json()["id"]


class TestHealth:
    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health")
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_readiness(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health/ready")
        assert response.json() == {"status": "ready", "checks": {"database": "ok", "redis": "ok"}}

    @pytest.mark.asyncio
    async def test_readiness_degraded(self, client: AsyncClient, fake_redis: AsyncMock) -> None:
        fake_redis.ping.side_effect = ConnectionError("redis down")
        response = await client.get("/api/v1/health/ready")
        assert response.json()["status"] == "degraded"


class TestAgents:
    @pytest.mark.asyncio
    async def test_create_and_get(self, client: AsyncClient) -> None:
        agent_id = await _create_agent(client)

        response = await client.get(f"/api/v1/agents/{agent_id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Sales agent"

    @pytest.mark.asyncio
    async def test_invalid_url_rejected(self, client: AsyncClient) -> None:
        response = await client.post("/api/v1/agents", json={"name": "x", "api_url": "not a url"})
        assert response.status_code == 422
        assert response.json()["type"] == "ConfigurationError"

    @pytest.mark.asyncio
    async def test_missing_agent(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/agents/nope")
        assert response.status_code == 404
        assert response.json()["type"] == "NotFoundError"

    @pytest.mark.asyncio
    async def test_list(self, client: AsyncClient) -> None:
        await _create_agent(client)
        await _create_agent(client)

        body = (await client.get("/api/v1/agents")).json()

        assert body["total"] == 2
        assert len(body["items"]) == 2

    @pytest.mark.asyncio
    async def test_nodes_and_state(self, client: AsyncClient) -> None:
        agent_id = await _create_agent(client)

        nodes = (await client.get(f"/api/v1/agents/{agent_id}/nodes")).json()
        state = (await client.get(f"/api/v1/agents/{agent_id}/state")).json()

        assert [n["id"] for n in nodes] == ["llm_0"]
        assert nodes[0]["system_message_prompt"] == "You greet leads for {brand}."
        assert state == {"brand": "Acme"}

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient) -> None:
        agent_id = await _create_agent(client)

        response = await client.put(f"/api/v1/agents/{agent_id}", json={"name": "Renamed"})

        assert response.status_code == 200
        assert response.json()["name"] == "Renamed"
        assert response.json()["api_url"].startswith("https://")

    @pytest.mark.asyncio
    async def test_delete_removes_tests(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        agent_id = await _create_agent(client)
        await _create_test(client, mock_llm, agent_id)

        assert (await client.delete(f"/api/v1/agents/{agent_id}")).status_code == 204
        assert (await client.get(f"/api/v1/agents/{agent_id}")).status_code == 404


class TestBehaviorTests:
    @pytest.mark.asyncio
    async def test_create_synthesizes_rubric(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        agent_id = await _create_agent(client)
        test_id = await _create_test(client, mock_llm, agent_id)

        tests = (await client.get(f"/api/v1/agents/{agent_id}/behavior-tests")).json()

        assert [t["id"] for t in tests] == [test_id]
        assert tests[0]["name"] == "Refund Mention"
        assert tests[0]["scorer_prompt"].startswith("Did the agent mention refunds?")
        assert tests[0]["simulation_count"] == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("count", [0, 51])
    async def test_simulation_count_bounds(self, client: AsyncClient, count: int) -> None:
        agent_id = await _create_agent(client)
        response = await client.post(f"/api/v1/agents/{agent_id}/behavior-tests", json={
            "problem_description": "x",
            "simulation_count": count,
        })
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_generation_failure(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        agent_id = await _create_agent(client)
        mock_llm.chat.return_value = make_response("no json here")

        response = await client.post(f"/api/v1/agents/{agent_id}/behavior-tests", json={
            "problem_description": "x",
        })

        assert response.status_code == 502
        assert response.json()["type"] == "GenerationError"

    @pytest.mark.asyncio
    async def test_edit_and_delete(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        agent_id = await _create_agent(client)
        test_id = await _create_test(client, mock_llm, agent_id)
        url = f"/api/v1/agents/{agent_id}/behavior-tests/{test_id}"

        response = await client.put(url, json={"scorer_prompt": "Stricter {{conversation}}", "simulation_count": 12})
        assert response.json()["scorer_prompt"] == "Stricter {{conversation}}"
        assert response.json()["simulation_count"] == 12

        assert (await client.delete(url)).status_code == 204
        assert (await client.delete(url)).status_code == 404

    @pytest.mark.asyncio
    async def test_refine(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        mock_llm.chat.return_value = make_response("The agent must state the 30-day refund policy.")

        response = await client.post("/api/v1/behavior-tests/refine", json={
            "problem_description": "mention refunds",
        })

        assert response.json() == {"problem_description": "The agent must state the 30-day refund policy."}


class TestExperiments:
    @pytest.mark.asyncio
    async def test_create_queues_task(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        agent_id = await _create_agent(client)
        test_id = await _create_test(client, mock_llm, agent_id)

        with patch("behaviorlab.api.v1.experiments.run_behavior_experiment") as task:
            response = await client.post(f"/api/v1/agents/{agent_id}/experiments", json={
                "test_id": test_id,
                "state_overrides": {"brand": "Globex"},
            })

        assert response.status_code == 202
        experiment_id = response.json()["experiment_id"]
        task.delay.assert_called_once_with(
            agent_id, test_id, experiment_id, nodes=None, state_overrides={"brand": "Globex"},
        )

    @pytest.mark.asyncio
    async def test_create_rejects_node_without_id(self, client: AsyncClient, mock_llm: AsyncMock) -> None:
        agent_id = await _create_agent(client)
        test_id = await _create_test(client, mock_llm, agent_id)

        with patch("behaviorlab.api.v1.experiments.run_behavior_experiment") as task:
            response = await client.post(f"/api/v1/agents/{agent_id}/experiments", json={
                "test_id": test_id,
                "nodes": [{"label": "Support", "system_message_prompt": "Be terse."}],
            })

        assert response.status_code == 422
        task.delay.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_accepts_camel_case_node_prompts(
        self, client: AsyncClient, mock_llm: AsyncMock,
    ) -> None:
        agent_id = await _create_agent(client)
        test_id = await _create_test(client, mock_llm, agent_id)

        with patch("behaviorlab.api.v1.experiments.run_behavior_experiment") as task:
            response = await client.post(f"/api/v1/agents/{agent_id}/experiments", json={
                "test_id": test_id,
                "nodes": [{"id": "n1", "systemMessagePrompt": "Always mention the refund policy."}],
            })

        assert response.status_code == 202
        experiment_id = response.json()["experiment_id"]
        task.delay.assert_called_once_with(
            agent_id, test_id, experiment_id,
            nodes=[{
                "id": "n1",
                "label": None,
                "type": None,
                "system_message_prompt": "Always mention the refund policy.",
                "human_message_prompt": None,
            }],
            state_overrides=None,
        )

    @pytest.mark.asyncio
    async def test_create_unknown_test(self, client: AsyncClient) -> None:
        agent_id = await _create_agent(client)

        with patch("behaviorlab.api.v1.experiments.run_behavior_experiment") as task:
            response = await client.post(f"/api/v1/agents/{agent_id}/experiments", json={"test_id": "nope"})

        assert response.status_code == 404
        task.delay.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_get_delete(self, client: AsyncClient, session_factory) -> None:
        store = SqlExperimentStore(session_factory)
        rubric = ScoringRubric(
            id="test-1", name="Refund Mention", problem_description="x",
            scorer_prompt="y", persona_hint="", simulation_count=1,
        )
        for experiment_id in ("exp-1", "exp-2"):
            await store.save("agent-1", Experiment(
                id=experiment_id, agent_id="agent-1", test_id="test-1", test=rubric,
            ))
        base = "/api/v1/agents/agent-1/experiments"

        listing = (await client.get(base)).json()
        assert listing["total"] == 2

        experiment = (await client.get(f"{base}/exp-1")).json()
        assert experiment["status"] == "running"
        assert experiment["summary"]["total"] == 0

        assert (await client.delete(f"{base}/exp-1")).status_code == 204
        assert (await client.get(f"{base}/exp-1")).status_code == 404

        assert (await client.delete(base)).status_code == 204
        assert (await client.get(base)).json()["total"] == 0

    @pytest.mark.asyncio
    async def test_cancel(self, client: AsyncClient, fake_redis: AsyncMock, session_factory) -> None:
        rubric = ScoringRubric(
            id="test-1", name="t", problem_description="x",
            scorer_prompt="y", persona_hint="", simulation_count=1,
        )
        store = SqlExperimentStore(session_factory)
        await store.save("agent-1", Experiment(id="exp-1", agent_id="agent-1", test_id="test-1", test=rubric))
        done = Experiment(id="exp-2", agent_id="agent-1", test_id="test-1", test=rubric, status="completed")
        await store.save("agent-1", done)

        response = await client.post("/api/v1/agents/agent-1/experiments/exp-1/cancel")
        assert response.status_code == 202
        assert response.json()["status"] == "cancelling"
        fake_redis.set.assert_awaited_once()

        response = await client.post("/api/v1/agents/agent-1/experiments/exp-2/cancel")
        assert response.status_code == 422


class TestMiddleware:
    @pytest.mark.asyncio
    async def test_request_id_echoed(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
        assert response.headers["X-Request-ID"] == "req-123"
        assert "X-Response-Time-Ms" in response.headers
