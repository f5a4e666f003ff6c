from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

QuestionType = Literal["binary", "choice", "discursive"]
ProviderKind = Literal["anthropic", "openai", "google"]

MAX_IMAGE_SIZE = 10 * 1024 * 1024  # 10MB in bytes


class Query(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str = Field(min_length=1)
    item_id: str = "1"
    question_type: QuestionType = "choice"
    except_question: bool = False  # choice question asking for the wrong alternative


class ProviderConfig(BaseModel):
    name: str
    kind: ProviderKind
    models: List[str] = Field(min_length=1)  # Preference order, most capable first
    weight: int = Field(default=1, ge=0)
    principal: bool = False
    api_key_env: str
    key_file: Optional[str] = None
    base_url: Optional[str] = None
    system_prompt: str = ""
    token_field: Literal["max_tokens", "max_completion_tokens"] = "max_tokens"
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)


class RetryPolicy(BaseModel):
    max_retries: int = Field(default=2, ge=0)
    initial_retry_delay_s: float = Field(default=1.0, ge=0.0)
    timeout_s: float = Field(default=10.0, gt=0)


class EngineConfig(BaseModel):
    providers: List[ProviderConfig] = Field(default_factory=list, max_length=10)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    max_concurrency: int = Field(default=1000, ge=1)
    provider_deadline_s: Optional[float] = Field(default=None, gt=0)
    token_budgets: Dict[str, int] = Field(
        default_factory=lambda: {"binary": 50, "choice": 1000, "discursive": 1000}
    )
    discursive_score_cap: int = Field(default=500, ge=1)
    justification_provider: Optional[str] = "claude"
    justification_max_tokens: int = Field(default=150, ge=1)
    extraction_provider: str = "gpt"
    extraction_model: str = "gpt-4o-mini"
    extraction_max_tokens: int = Field(default=3000, ge=1)
    extraction_timeout_s: float = Field(default=60.0, gt=0)

    def budget_for(self, question_type: str) -> int:
        return self.token_budgets.get(question_type, 1000)

    @classmethod
    def default(cls, **overrides) -> "EngineConfig":
        data = {"providers": [p.model_dump() for p in DEFAULT_PROVIDERS]}
        data.update(overrides)
        return cls(**data)


# Registry order doubles as the trust priority used by the last-resort tie-breaks.
DEFAULT_PROVIDERS = [
    ProviderConfig(
        name="claude",
        kind="anthropic",
        models=[
            "claude-3-7-sonnet-20250219",
            "claude-3-5-sonnet-20241022",
            "claude-3-5-haiku-20241022",
        ],
        weight=5,
        principal=True,
        api_key_env="ANTHROPIC_API_KEY",
        key_file="AnthropicAPIKey.txt",
        base_url="https://api.anthropic.com/v1",
    ),
    ProviderConfig(
        name="gemini",
        kind="google",
        models=["gemini-2.0-flash", "gemini-1.0-pro", "gemini-pro"],
        weight=6,
        principal=True,
        api_key_env="GEMINI_API_KEY",
        key_file="GoogleAPIKey.txt",
        base_url="https://generativelanguage.googleapis.com/v1beta/models",
    ),
    ProviderConfig(
        name="gpt",
        kind="openai",
        models=["gpt-4.5-preview", "gpt-4o", "gpt-3.5-turbo"],
        weight=4,
        principal=True,
        api_key_env="OPENAI_API_KEY",
        key_file="OpenAIAPIKey.txt",
        base_url="https://api.openai.com/v1",
        system_prompt=(
            "Você é um assistente especializado em responder questões de concurso "
            "com extrema precisão e concisão. Siga EXATAMENTE o formato solicitado."
        ),
        token_field="max_completion_tokens",
        temperature=0.1,
    ),
    ProviderConfig(
        name="xai",
        kind="openai",
        models=["grok-3-beta", "grok-3-fast-beta"],
        weight=4,
        principal=True,
        api_key_env="XAI_API_KEY",
        key_file="XAIAPIKey.txt",
        base_url="https://api.x.ai/v1",
        system_prompt="Você é um assistente especializado em responder questões de concurso.",
        temperature=0.3,
    ),
    ProviderConfig(
        name="deepseek",
        kind="openai",
        models=["deepseek-reasoner", "deepseek-chat"],
        weight=3,
        api_key_env="DEEPSEEK_API_KEY",
        key_file="DeepSeekAPIKey.txt",
        base_url="https://api.deepseek.com",
        system_prompt="You are a helpful assistant.",
        temperature=0.3,
    ),
    ProviderConfig(
        name="maritaca",
        kind="openai",
        models=["sabia-3", "sabiazinho-3"],
        weight=3,
        api_key_env="MARITACA_API_KEY",
        key_file="MaritacaAPIKey.txt",
        base_url="https://chat.maritaca.ai/api",
        temperature=0.3,
    ),
]
