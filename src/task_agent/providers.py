"""Provider/model registry.

The registry is an immutable table built once at startup and handed by
reference to whatever needs it (settings editor, model switcher, execution).
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Provider:
    """An execution-engine provider and the models it offers.

    ``litellm_prefix`` is the provider segment of a litellm model string
    (e.g. "anthropic" → "anthropic/claude-sonnet-4-6"). Providers with an
    ``api_base`` are OpenAI-compatible servers called with the openai SDK.
    """

    id: str
    name: str
    models: tuple[str, ...]
    default_model: str
    env_key: str = ""
    litellm_prefix: str = ""
    api_base: str | None = None

    @property
    def requires_key(self) -> bool:
        return bool(self.env_key)


DEFAULT_PROVIDERS: tuple[Provider, ...] = (
    Provider(
        id="anthropic",
        name="Anthropic",
        models=("claude-opus-4-6", "claude-sonnet-4-6", "claude-haiku-4-5-20251001"),
        default_model="claude-sonnet-4-6",
        env_key="ANTHROPIC_API_KEY",
        litellm_prefix="anthropic",
    ),
    Provider(
        id="openai",
        name="OpenAI",
        models=("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "o1", "o3-mini"),
        default_model="gpt-4o",
        env_key="OPENAI_API_KEY",
        litellm_prefix="openai",
    ),
    Provider(
        id="groq",
        name="Groq",
        models=("llama-3.3-70b-versatile", "llama-3.1-8b-instant", "mixtral-8x7b-32768", "gemma2-9b-it"),
        default_model="llama-3.3-70b-versatile",
        env_key="GROQ_API_KEY",
        litellm_prefix="groq",
    ),
    Provider(
        id="moonshot",
        name="Moonshot (Kimi)",
        models=("kimi-k2-0711-preview", "moonshot-v1-8k", "moonshot-v1-32k", "moonshot-v1-128k"),
        default_model="kimi-k2-0711-preview",
        env_key="MOONSHOT_API_KEY",
        api_base="https://api.moonshot.cn/v1",
    ),
    Provider(
        id="ollama",
        name="Ollama (Local)",
        models=("llama3.3", "llama3.1", "qwen2.5-coder", "mistral", "codellama", "phi4", "gemma3:1b"),
        default_model="llama3.3",
        api_base="http://localhost:11434/v1",
    ),
)


class ProviderRegistry:
    """Read-only lookup over a fixed provider table."""

    def __init__(self, providers: tuple[Provider, ...] = DEFAULT_PROVIDERS) -> None:
        if not providers:
            raise ValueError("provider registry cannot be empty")
        self._providers = tuple(providers)
        self._by_id = {p.id: p for p in self._providers}

    def __iter__(self):
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __getitem__(self, index: int) -> Provider:
        return self._providers[index]

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(p.id for p in self._providers)

    def get(self, provider_id: str) -> Provider | None:
        return self._by_id.get(provider_id)

    def index_of(self, provider_id: str) -> int:
        """Position of a provider in the table, 0 when unknown."""
        for i, p in enumerate(self._providers):
            if p.id == provider_id:
                return i
        return 0

    def model_index(self, provider_id: str, model: str) -> int:
        """Position of a model within its provider's list, 0 when unknown."""
        provider = self.get(provider_id)
        if provider is None or model not in provider.models:
            return 0
        return provider.models.index(model)

    def default_model(self, provider_id: str) -> str:
        provider = self.get(provider_id)
        return provider.default_model if provider else ""

    def key_providers(self) -> tuple[Provider, ...]:
        """Providers that need an API key, in table order."""
        return tuple(p for p in self._providers if p.requires_key)
