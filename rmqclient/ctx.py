"""Per-call context values passed through producers, consumers and interceptors."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from rmqclient import log
from rmqclient.message import Message, MessageExt, MessageQueue, MessageType, SendResult

CONSUMER_PUSH = "ConsumerPush"
CONSUMER_PULL = "ConsumerPull"
PROP_CTX_TYPE = "ConsumeContextType"

_MAX_INT32 = 2**31 - 1


class _CtxKey(enum.Enum):
    METHOD = enum.auto()
    MSG_CTX = enum.auto()
    ORDERLY_CTX = enum.auto()
    CONCURRENTLY_CTX = enum.auto()
    PRODUCER_CTX = enum.auto()


class Context:
    """An immutable set of keyed values; with_value returns a derived context."""

    __slots__ = ("_values",)

    def __init__(self, values: Optional[Mapping[Any, Any]] = None) -> None:
        self._values: Dict[Any, Any] = dict(values or {})

    def with_value(self, key: Any, value: Any) -> "Context":
        return Context({**self._values, key: value})

    def value(self, key: Any) -> Any:
        return self._values.get(key)


class CommunicationMode(str, enum.Enum):
    SEND_SYNC = "SendSync"
    SEND_ONEWAY = "SendOneway"
    SEND_ASYNC = "SendAsync"


class ConsumeReturnType(str, enum.Enum):
    SUCCESS = "SUCCESS"
    TIMEOUT = "TIMEOUT"
    EXCEPTION = "EXCEPTION"
    NULL = "RETURNNULL"
    FAILED = "FAILED"

    def ordinal(self) -> int:
        order = list(ConsumeReturnType)
        if self not in order:
            log.error(f"illegal ConsumeReturnType: {self}", None)
            return 0
        return order.index(self)


@dataclass
class ConsumeMessageContext:
    consumer_group: str = ""
    msgs: List[MessageExt] = field(default_factory=list)
    mq: Optional[MessageQueue] = None
    success: bool = False
    status: str = ""
    properties: Dict[str, str] = field(default_factory=dict)


@dataclass
class ConsumeOrderlyContext:
    mq: MessageQueue = field(default_factory=MessageQueue)
    auto_commit: bool = True
    suspend_current_queue_time_millis: int = -1


@dataclass
class ConsumeConcurrentlyContext:
    mq: MessageQueue = field(default_factory=MessageQueue)
    delay_level_when_next_consume: int = 0
    ack_index: int = _MAX_INT32


@dataclass
class ProducerCtx:
    producer_group: str = ""
    message: Message = field(default_factory=Message)
    mq: MessageQueue = field(default_factory=MessageQueue)
    broker_addr: str = ""
    born_host: str = ""
    communication_mode: Optional[CommunicationMode] = None
    send_result: Optional[SendResult] = None
    props: Dict[str, str] = field(default_factory=dict)
    msg_type: MessageType = MessageType.NORMAL_MSG
    namespace: str = ""


def _require(ctx: Context, key: _CtxKey, what: str) -> Any:
    value = ctx.value(key)
    if value is None:
        raise LookupError(f"no {what} in context")
    return value


def with_method(ctx: Context, mode: CommunicationMode) -> Context:
    """Record the calling method name."""
    return ctx.with_value(_CtxKey.METHOD, mode)


def get_method(ctx: Context) -> CommunicationMode:
    """The calling method name; raises LookupError if none was recorded."""
    return _require(ctx, _CtxKey.METHOD, "method")


def with_consumer_ctx(ctx: Context, consumer_ctx: ConsumeMessageContext) -> Context:
    return ctx.with_value(_CtxKey.MSG_CTX, consumer_ctx)


def get_consumer_ctx(ctx: Context) -> Optional[ConsumeMessageContext]:
    """The push-consumer message context, or None outside a push consumer."""
    return ctx.value(_CtxKey.MSG_CTX)


def with_orderly_ctx(ctx: Context, orderly_ctx: ConsumeOrderlyContext) -> Context:
    return ctx.with_value(_CtxKey.ORDERLY_CTX, orderly_ctx)


def get_orderly_ctx(ctx: Context) -> Optional[ConsumeOrderlyContext]:
    return ctx.value(_CtxKey.ORDERLY_CTX)


def with_concurrently_ctx(ctx: Context, concurrently_ctx: ConsumeConcurrentlyContext) -> Context:
    return ctx.with_value(_CtxKey.CONCURRENTLY_CTX, concurrently_ctx)


def get_concurrently_ctx(ctx: Context) -> Optional[ConsumeConcurrentlyContext]:
    return ctx.value(_CtxKey.CONCURRENTLY_CTX)


def with_producer_ctx(ctx: Context, producer_ctx: ProducerCtx) -> Context:
    return ctx.with_value(_CtxKey.PRODUCER_CTX, producer_ctx)


def get_producer_ctx(ctx: Context) -> ProducerCtx:
    """The producer context; raises LookupError if none was recorded."""
    return _require(ctx, _CtxKey.PRODUCER_CTX, "producer context")