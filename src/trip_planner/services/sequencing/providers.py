"""Registry of chat-completions providers."""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from ...config import settings
from ...models.domain import ProviderConfig

# Every entry speaks the same chat-completions request/response shape.
DEFAULT_PROVIDERS: Mapping[str, ProviderConfig] = MappingProxyType(
    {
        "deepseek": ProviderConfig(
            provider_id="deepseek",
            endpoint="https://api.deepseek.com/chat/completions",
            model="deepseek-chat",
            label="DeepSeek",
        ),
        "openai": ProviderConfig(
            provider_id="openai",
            endpoint="https://api.openai.com/v1/chat/completions",
            model="gpt-4o-mini",
            label="OpenAI",
        ),
        "moonshot": ProviderConfig(
            provider_id="moonshot",
            endpoint="https://api.moonshot.cn/v1/chat/completions",
            model="moonshot-v1-8k",
            label="Moonshot (Kimi)",
        ),
        "qwen": ProviderConfig(
            provider_id="qwen",
            endpoint="https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions",
            model="qwen-plus",
            label="Qwen (DashScope)",
        ),
        "siliconflow": ProviderConfig(
            provider_id="siliconflow",
            endpoint="https://api.siliconflow.cn/v1/chat/completions",
            model="deepseek-ai/DeepSeek-V3",
            label="SiliconFlow",
        ),
    }
)


def load_providers(extra: Mapping[str, Mapping[str, str]] | None = None) -> Mapping[str, ProviderConfig]:
    """Merge the built-in table with providers declared in configuration."""
    extra = settings.extra_providers if extra is None else extra
    merged = dict(DEFAULT_PROVIDERS)
    for provider_id, entry in extra.items():
        merged[provider_id] = ProviderConfig(
            provider_id=provider_id,
            endpoint=entry["endpoint"],
            model=entry["model"],
            label=entry.get("label"),
        )
    return MappingProxyType(merged)


PROVIDERS = load_providers()


def get_provider(provider_id: str) -> ProviderConfig:
    try:
        return PROVIDERS[provider_id.strip().lower()]
    except KeyError:
        raise KeyError(
            f"Unknown provider '{provider_id}'. Available: {', '.join(sorted(PROVIDERS))}"
        ) from None
