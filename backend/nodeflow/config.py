"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "nodeflow"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int = 5174
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Simulated latency before each processor call (seconds)
    processing_delay: float = 0.1
    # Bounds for the mock text generation latency (seconds)
    generation_latency_min: float = 1.0
    generation_latency_max: float = 3.0
    default_model: str = "llama-3.1-8b-instant"

    # Where WorkflowExecutionClient connects by default
    client_base_url: str = "http://localhost:5174"

    model_config = {"env_prefix": "NODEFLOW_"}


settings = Settings()
