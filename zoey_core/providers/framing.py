"""流式响应的增量分帧解码器。

三个 Provider 的流式响应分帧方式不同：

- NdjsonDecoder：每行一个 JSON 对象（Ollama）。
- JsonArrayDecoder：一个持续输出的 JSON 数组，数组元素是对象（Gemini）。
- SseDecoder：Server-Sent Events，``data:`` 行，以 ``[DONE]`` 结束（Groq）。

所有解码器接口一致：feed(text) 返回本次新解析出的帧列表，flush() 在传输结束时
返回剩余的帧。输入可以在任意位置被切分（行中间、字符串中间、转义符中间）。
单个格式错误的帧会被丢弃并记录 debug 日志，不影响后续帧。
"""

import json
import logging
from typing import Any, List

from zoey_core.infrastructure.logging.logger import log_event


class _SseDone:
    def __repr__(self) -> str:
        return "SSE_DONE"


# SSE 结束标记 ``data: [DONE]``
SSE_DONE = _SseDone()


def _drop(framing: str, raw: str) -> None:
    log_event(logging.DEBUG, "Dropped malformed frame", {"framing": framing}, size=len(raw))


def _split_lines(buffer: str) -> tuple[List[str], str]:
    parts = buffer.split("\n")
    rest = parts.pop()
    return [p.rstrip("\r") for p in parts], rest


class NdjsonDecoder:
    """按行解析 JSON，未以换行结尾的部分留在缓冲区。"""

    framing = "ndjson"

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, text: str) -> List[Any]:
        lines, self._buffer = _split_lines(self._buffer + text)
        return self._decode(lines)

    def flush(self) -> List[Any]:
        rest, self._buffer = self._buffer, ""
        return self._decode([rest])

    def _decode(self, lines: List[str]) -> List[Any]:
        frames: List[Any] = []
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                frames.append(json.loads(line))
            except json.JSONDecodeError:
                _drop(self.framing, line)
        return frames


class JsonArrayDecoder:
    """扫描流式 JSON 数组中的顶层对象。

    逐字符维护括号深度与字符串/转义状态，一个对象的括号闭合后立即交给
    json.loads。对象之间的 ``[`` ``,`` ``]`` 和空白直接跳过。
    已扫描的位置会被记住，新数据到来时不会重复扫描。
    """

    framing = "json-array"

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._buffer = ""
        self._pos = 0
        self._start = -1
        self._depth = 0
        self._in_string = False
        self._escape = False

    def feed(self, text: str) -> List[Any]:
        self._buffer += text
        frames: List[Any] = []
        buf = self._buffer
        i = self._pos
        while i < len(buf):
            ch = buf[i]
            if self._depth == 0:
                if ch == "{":
                    self._start = i
                    self._depth = 1
            elif self._in_string:
                if self._escape:
                    self._escape = False
                elif ch == "\\":
                    self._escape = True
                elif ch == '"':
                    self._in_string = False
            elif ch == '"':
                self._in_string = True
            elif ch in "{[":
                self._depth += 1
            elif ch in "}]":
                self._depth -= 1
                if self._depth == 0:
                    self._emit(buf[self._start:i + 1], frames)
                    self._start = -1
            i += 1

        if self._depth == 0:
            self._buffer = ""
            self._pos = 0
        else:
            self._buffer = buf[self._start:]
            self._pos = i - self._start
            self._start = 0
        return frames

    def flush(self) -> List[Any]:
        if self._depth > 0 and self._buffer:
            _drop(self.framing, self._buffer)
        self._reset()
        return []

    def _emit(self, raw: str, frames: List[Any]) -> None:
        try:
            frames.append(json.loads(raw))
        except json.JSONDecodeError:
            _drop(self.framing, raw)


class SseDecoder:
    """Server-Sent Events 解码。

    同一事件的多行 data 以换行拼接，空行分发事件。注释行（``:`` 开头）和
    event/id/retry 字段忽略。``[DONE]`` 返回 SSE_DONE，其余负载按 JSON 解析。
    """

    framing = "sse"

    def __init__(self) -> None:
        self._buffer = ""
        self._data: List[str] = []

    def feed(self, text: str) -> List[Any]:
        lines, self._buffer = _split_lines(self._buffer + text)
        frames: List[Any] = []
        for line in lines:
            self._handle_line(line, frames)
        return frames

    def flush(self) -> List[Any]:
        frames: List[Any] = []
        if self._buffer:
            self._handle_line(self._buffer.rstrip("\r"), frames)
            self._buffer = ""
        self._dispatch(frames)
        return frames

    def _handle_line(self, line: str, frames: List[Any]) -> None:
        if not line:
            self._dispatch(frames)
            return
        if line.startswith(":"):
            return
        field, _, value = line.partition(":")
        if field != "data":
            return
        if value.startswith(" "):
            value = value[1:]
        self._data.append(value)

    def _dispatch(self, frames: List[Any]) -> None:
        if not self._data:
            return
        data, self._data = self._data, []
        payload = "\n".join(data)
        if payload.strip() == "[DONE]":
            frames.append(SSE_DONE)
            return
        try:
            frames.append(json.loads(payload))
            return
        except json.JSONDecodeError:
            if len(data) == 1:
                _drop(self.framing, payload)
                return
        # 部分服务端在 data 行之间不发空行：逐行重试
        for line in data:
            if line.strip() == "[DONE]":
                frames.append(SSE_DONE)
                continue
            try:
                frames.append(json.loads(line))
            except json.JSONDecodeError:
                _drop(self.framing, line)
