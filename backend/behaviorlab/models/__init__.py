from behaviorlab.models.agent_config import AgentConfig
from behaviorlab.models.base import Base
from behaviorlab.models.behavior_test import BehaviorTest
from behaviorlab.models.experiment import ExperimentRecord

__all__ = [
    "Base",
    "AgentConfig",
    "BehaviorTest",
    "ExperimentRecord",
]
