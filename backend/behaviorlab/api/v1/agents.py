from fastapi import APIRouter, Depends, Query
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from behaviorlab.db.session import get_db
from behaviorlab.engine.agent_gateway import validate_agent_url
from behaviorlab.engine.nodes import build_node_catalog, extract_state_defaults
from behaviorlab.models.agent_config import AgentConfig
from behaviorlab.models.behavior_test import BehaviorTest
from behaviorlab.models.experiment import ExperimentRecord
from behaviorlab.schemas.agent import (
    AgentCreate,
    AgentListResponse,
    AgentResponse,
    AgentUpdate,
    NodeResponse,
)
from behaviorlab.services.experiment_service import load_agent

router = APIRouter(prefix="/agents", tags=["agents"])


@router.get("", response_model=AgentListResponse)
async def list_agents(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> AgentListResponse:
    total = (await db.execute(select(func.count(AgentConfig.id)))).scalar_one()
    result = await db.execute(
        select(AgentConfig).order_by(AgentConfig.created_at.desc()).offset(offset).limit(limit)
    )
    items = [AgentResponse.model_validate(r) for r in result.scalars().all()]

    return AgentListResponse(total=total, offset=offset, limit=limit, items=items)


@router.post("", response_model=AgentResponse, status_code=201)
async def create_agent(
    body: AgentCreate,
    db: AsyncSession = Depends(get_db),
) -> AgentResponse:
    validate_agent_url(body.api_url)
    agent = AgentConfig(
        name=body.name,
        api_url=body.api_url,
        description=body.description,
        graph=body.graph,
    )
    db.add(agent)
    await db.flush()
    await db.refresh(agent)
    return AgentResponse.model_validate(agent)


@router.get("/{agent_id}", response_model=AgentResponse)
async def get_agent(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
) -> AgentResponse:
    return AgentResponse.model_validate(await load_agent(db, agent_id))


@router.put("/{agent_id}", response_model=AgentResponse)
async def update_agent(
    agent_id: str,
    body: AgentUpdate,
    db: AsyncSession = Depends(get_db),
) -> AgentResponse:
    agent = await load_agent(db, agent_id)

    update_data = body.model_dump(exclude_unset=True)
    if update_data.get("api_url"):
        validate_agent_url(update_data["api_url"])
    for key, value in update_data.items():
        setattr(agent, key, value)

    await db.flush()
    await db.refresh(agent)
    return AgentResponse.model_validate(agent)


@router.delete("/{agent_id}", status_code=204)
async def delete_agent(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
) -> None:
    await load_agent(db, agent_id)
    await db.execute(delete(ExperimentRecord).where(ExperimentRecord.agent_id == agent_id))
    await db.execute(delete(BehaviorTest).where(BehaviorTest.agent_id == agent_id))
    await db.execute(delete(AgentConfig).where(AgentConfig.id == agent_id))


@router.get("/{agent_id}/nodes", response_model=list[NodeResponse])
async def list_agent_nodes(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[NodeResponse]:
    """Prompt slots that can be overridden per experiment."""
    agent = await load_agent(db, agent_id)
    return [
        NodeResponse(
            id=node.id,
            label=node.label,
            type=node.type,
            system_message_prompt=node.system_message_prompt,
            human_message_prompt=node.human_message_prompt,
        )
        for node in build_node_catalog(agent.graph or {})
    ]


@router.get("/{agent_id}/state", response_model=dict[str, str])
async def get_agent_state(
    agent_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    agent = await load_agent(db, agent_id)
    return extract_state_defaults(agent.graph or {})
