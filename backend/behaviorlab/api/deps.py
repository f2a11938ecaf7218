"""Shared FastAPI dependencies. Tests override these with fakes."""

from behaviorlab.db.experiment_store import SqlExperimentStore
from behaviorlab.db.session import async_session_factory
from behaviorlab.engine.llm_client import LLMClient
from behaviorlab.engine.types import LLMClientProtocol
from behaviorlab.evaluation.types import ExperimentStoreProtocol


def get_llm_client() -> LLMClientProtocol:
    return LLMClient()


def get_experiment_store() -> ExperimentStoreProtocol:
    return SqlExperimentStore(async_session_factory)
