"""多 Provider 回退引擎。

按 provider_priority 依次尝试每个 Provider，把增量文本以 StreamEvent 转发给调用方，
第一个正常结束的 Provider 即为本次结果：

1. 调用开始时读取一次优先级与各 Provider 配置快照。
2. 不可用的 Provider（缺少 base_url / API Key）直接跳过，不发网络请求。
3. 单个 Provider 的传输失败只记录日志，然后尝试下一个。
4. 全部失败时记录聚合错误 AllProvidersFailed，并仍然发出唯一的 complete 事件。

Provider 之间严格串行，从不并行尝试。
"""

import logging
import time
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Sequence, Type
from uuid import uuid4

from zoey_core.config.settings import settings
from zoey_core.domain.exceptions import AllProvidersFailed, BusinessError
from zoey_core.domain.models import HistoryItem, ProviderId, StreamEvent, normalize_history
from zoey_core.infrastructure.logging.logger import log_event
from zoey_core.providers import PROVIDER_CLIENTS
from zoey_core.providers.base import ProviderClient
from zoey_core.providers.registry import snapshot_provider_configs


EventCallback = Callable[[StreamEvent], None]


class FallbackEngine:
    def __init__(
        self,
        cfg: Any = settings,
        clients: Optional[Mapping[ProviderId, Type[ProviderClient]]] = None,
    ):
        self._settings = cfg
        self._clients = clients if clients is not None else PROVIDER_CLIENTS
        self.active_provider: Optional[ProviderId] = None
        self.last_error: Optional[str] = None
        self.last_failure: Optional[AllProvidersFailed] = None
        self.is_loading = False

    def clear_error(self) -> None:
        self.last_error = None
        self.last_failure = None

    def send_message(self, history: Sequence[HistoryItem], on_event: EventCallback) -> bool:
        """回调形式：逐个把事件交给 on_event。

        Returns:
            True 表示某个 Provider 成功；False 表示所有 Provider 都失败。
        """
        for event in self.stream(history):
            on_event(event)
        return self.last_failure is None

    def stream(self, history: Sequence[HistoryItem]) -> Iterator[StreamEvent]:
        """生成器形式：产出若干 token 事件，最后恰好一个 complete 事件。"""

        messages = normalize_history(history)
        snapshot = snapshot_provider_configs(self._settings)
        timeout = float(getattr(self._settings, "http_timeout", 30.0))

        self.active_provider = None
        self.clear_error()
        self.is_loading = True
        start_time = time.time()
        log_ctx: Dict[str, Any] = {"trace_id": f"tr-{uuid4().hex}"}
        attempts: Dict[str, str] = {}
        self._log(
            logging.INFO,
            "Sending message",
            log_ctx,
            message_count=len(messages),
            priority=[provider.value for provider, _ in snapshot],
        )

        try:
            for provider, provider_cfg in snapshot:
                if not provider_cfg.is_eligible:
                    attempts[provider.value] = "ineligible"
                    self._log(
                        logging.DEBUG,
                        "Skipping ineligible provider",
                        log_ctx,
                        provider=provider.value,
                        reason=provider_cfg.ineligible_reason,
                    )
                    continue
                client_cls = self._clients.get(provider)
                if client_cls is None:
                    attempts[provider.value] = "no client registered"
                    continue

                client = client_cls(provider_cfg, timeout=timeout)
                token_count = 0
                try:
                    for fragment in client.chat_stream(messages):
                        if not fragment:
                            continue
                        token_count += 1
                        yield StreamEvent.token(fragment)
                except BusinessError as exc:
                    attempts[provider.value] = f"{exc.code}: {exc.message}"
                    self._log(
                        logging.WARNING,
                        "Provider failed, trying next provider",
                        log_ctx,
                        provider=provider.value,
                        error_code=exc.code,
                        http_status=exc.http_status,
                        tokens_forwarded=token_count,
                    )
                    continue

                self.active_provider = provider
                self._log(
                    logging.INFO,
                    "Provider completed",
                    log_ctx,
                    provider=provider.value,
                    token_count=token_count,
                    elapsed_seconds=round(time.time() - start_time, 2),
                )
                yield StreamEvent.complete()
                return

            failure = AllProvidersFailed(attempts)
            self.last_failure = failure
            self.last_error = failure.message
            self._log(logging.ERROR, "All providers failed", log_ctx, attempts=attempts)
            yield StreamEvent.complete()
        finally:
            self.is_loading = False

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        log_event(level, message, log_ctx, **fields)
