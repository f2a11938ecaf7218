from fastapi import APIRouter

from behaviorlab.api.v1 import agents, behavior_tests, experiments, health

api_router = APIRouter()

# Health (no prefix)
api_router.include_router(health.router)

# V1 endpoints
api_router.include_router(agents.router)
api_router.include_router(behavior_tests.router)
api_router.include_router(experiments.router)
