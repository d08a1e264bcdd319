"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 默认值与运行期配置 (registry)。
- 流式响应的分帧解码 (framing)。
- 提供各厂商的具体实现 (ollama_client、gemini_client、groq_client)。
"""

from typing import Mapping, Type

from zoey_core.domain.models import ProviderId
from zoey_core.providers.base import StreamingHttpClient
from zoey_core.providers.gemini_client import GeminiClient
from zoey_core.providers.groq_client import GroqClient
from zoey_core.providers.ollama_client import OllamaClient


# Provider 标识 -> 客户端类 的分发表
PROVIDER_CLIENTS: Mapping[ProviderId, Type[StreamingHttpClient]] = {
    ProviderId.OLLAMA: OllamaClient,
    ProviderId.GEMINI: GeminiClient,
    ProviderId.GROQ: GroqClient,
}
