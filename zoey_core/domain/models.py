"""统一的对话与流式事件数据模型。

本模块定义了 FallbackEngine 在不同 Provider 之间共享的标准数据结构：

- ConversationMessage: 一条对话消息（user/assistant），不可变。
- ProviderId: 支持的 Provider 枚举（封闭集合）。
- StreamEvent: 发给调用方的流式事件（token / complete）。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Sequence, Union


# 对话角色（Provider 各自的 role 名称由适配器负责映射，如 Gemini 使用 "model"）
Role = Literal["user", "assistant"]


class ProviderId(str, Enum):
    """Provider 标识：本地 Ollama、Gemini、Groq。"""

    OLLAMA = "ollama"
    GEMINI = "gemini"
    GROQ = "groq"

    @classmethod
    def parse(cls, value: Union[str, "ProviderId"]) -> "ProviderId":
        """名称不区分大小写，未知名称抛 ValueError。"""

        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"Unknown provider: {value!r}")


@dataclass(frozen=True)
class ConversationMessage:
    """一条对话消息。

    - role: "user" 或 "assistant"。
    - content: 纯文本内容。

    消息序列的顺序有语义，所有 Provider 都必须按原顺序发送。
    """

    role: Role
    content: str

    def __post_init__(self) -> None:
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Unsupported role: {self.role!r}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ConversationMessage":
        return cls(role=data.get("role"), content=data.get("content") or "")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


HistoryItem = Union[ConversationMessage, Mapping[str, Any]]


def normalize_history(history: Sequence[HistoryItem]) -> List[ConversationMessage]:
    """把 dict 或 ConversationMessage 混合的历史统一为 ConversationMessage 列表。"""

    normalized: List[ConversationMessage] = []
    for item in history or []:
        if isinstance(item, ConversationMessage):
            normalized.append(item)
        else:
            normalized.append(ConversationMessage.from_dict(item))
    return normalized


@dataclass(frozen=True)
class StreamEvent:
    """FallbackEngine 产生的流式事件。

    kind:
        - "token": 一段非空的回答增量，text 为增量内容。
        - "complete": 本次调用结束事件，每次调用恰好一个，text 为空。
    """

    kind: Literal["token", "complete"]
    text: str = ""

    @classmethod
    def token(cls, text: str) -> "StreamEvent":
        return cls(kind="token", text=text)

    @classmethod
    def complete(cls) -> "StreamEvent":
        return cls(kind="complete")

    @property
    def is_complete(self) -> bool:
        return self.kind == "complete"
