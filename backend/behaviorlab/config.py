from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # App
    app_name: str = "BehaviorLab"
    debug: bool = False

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "behaviorlab"
    postgres_password: str = "behaviorlab"
    postgres_db: str = "behaviorlab"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"

    # LLM Provider (model-agnostic via LiteLLM)
    # Provider: "openai", "anthropic", "ollama"
    llm_provider: str = "openai"
    ollama_base_url: str = "http://localhost:11434"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    # Model names (LiteLLM format)
    persona_model: str = "gpt-4o"
    simulator_model: str = "gpt-4o-mini"
    judge_model: str = "gpt-4o"
    insights_model: str = "gpt-4o"

    # Experiment policy
    turns_per_simulation: int = 5
    pass_threshold: float = 0.7
    turn_delay_seconds: float = 0.3
    persona_batch_size: int = 5
    max_empty_persona_batches: int = 3
    max_concurrent_simulations: int = 5
    max_simulation_count: int = 50
    agent_request_timeout_seconds: float = 60.0

    # Experiment tracking (optional)
    braintrust_api_key: str = ""
    braintrust_project_name: str = "Agent Behavior Tests"

    @property
    def tracking_enabled(self) -> bool:
        return bool(self.braintrust_api_key)

    model_config = {"env_prefix": "BEHAVIORLAB_", "env_file": ".env"}


settings = Settings()
