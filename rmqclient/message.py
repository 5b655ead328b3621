"""Messages, message queues, message ids and send/pull results."""

from __future__ import annotations

import abc
import datetime
import enum
import os
import struct
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Union

from rmqclient import utils

PROPERTY_KEY_SEPARATOR = " "
PROPERTY_KEYS = "KEYS"
PROPERTY_TAGS = "TAGS"
PROPERTY_WAIT_STORE_MSG_OK = "WAIT"
PROPERTY_DELAY_TIME_LEVEL = "DELAY"
PROPERTY_RETRY_TOPIC = "RETRY_TOPIC"
PROPERTY_REAL_TOPIC = "REAL_TOPIC"
PROPERTY_REAL_QUEUE_ID = "REAL_QID"
PROPERTY_TRANSACTION_PREPARED = "TRAN_MSG"
PROPERTY_PRODUCER_GROUP = "PGROUP"
PROPERTY_MIN_OFFSET = "MIN_OFFSET"
PROPERTY_MAX_OFFSET = "MAX_OFFSET"
PROPERTY_BUYER_ID = "BUYER_ID"
PROPERTY_ORIGIN_MESSAGE_ID = "ORIGIN_MESSAGE_ID"
PROPERTY_TRANSFER_FLAG = "TRANSFER_FLAG"
PROPERTY_CORRECTION_FLAG = "CORRECTION_FLAG"
PROPERTY_MQ2_FLAG = "MQ2_FLAG"
PROPERTY_RECONSUME_TIME = "RECONSUME_TIME"
PROPERTY_MSG_REGION = "MSG_REGION"
PROPERTY_TRACE_SWITCH = "TRACE_ON"
PROPERTY_UNIQUE_CLIENT_MESSAGE_ID_KEY_INDEX = "UNIQ_KEY"
PROPERTY_MAX_RECONSUME_TIMES = "MAX_RECONSUME_TIMES"
PROPERTY_CONSUME_START_TIME = "CONSUME_START_TIME"
PROPERTY_TRANSACTION_PREPARED_QUEUE_OFFSET = "TRAN_PREPARED_QUEUE_OFFSET"
PROPERTY_TRANSACTION_CHECK_TIMES = "TRANSACTION_CHECK_TIMES"
PROPERTY_CHECK_IMMUNITY_TIME_IN_SECONDS = "CHECK_IMMUNITY_TIME_IN_SECONDS"
PROPERTY_SHARDING_KEY = "SHARDING_KEY"

FLAG_COMPRESSED = 0x1
MSG_ID_LENGTH = 8 + 8

PROPERTY_SEPARATOR = "\x02"
NAME_VALUE_SEPARATOR = "\x01"

COMPRESSED_FLAG = 0x1
MULTI_TAGS_FLAG = 0x1 << 1
TRANSACTION_NOT_TYPE = 0
TRANSACTION_PREPARED_TYPE = 0x1 << 2
TRANSACTION_COMMIT_TYPE = 0x2 << 2
TRANSACTION_ROLLBACK_TYPE = 0x3 << 2


def _format_map(props: Mapping[str, str]) -> str:
    return "map[" + " ".join(f"{k}:{props[k]}" for k in sorted(props)) + "]"


@dataclass
class Message:
    """A message to be sent, with its user and system properties."""

    topic: str = ""
    body: bytes = b""
    flag: int = 0
    transaction_id: str = ""
    batch: bool = False
    queue: Optional["MessageQueue"] = None
    _properties: Dict[str, str] = field(default_factory=dict, init=False, repr=False)
    _lock: threading.RLock = field(
        default_factory=threading.RLock, init=False, repr=False, compare=False
    )

    def with_properties(self, props: Mapping[str, str]) -> None:
        with self._lock:
            self._properties = dict(props)

    def with_property(self, key: str, value: str) -> None:
        """Set a property; empty keys or values are ignored."""
        if not key or not value:
            return
        with self._lock:
            self._properties[key] = value

    def get_property(self, key: str) -> str:
        with self._lock:
            return self._properties.get(key, "")

    def remove_property(self, key: str) -> str:
        """Remove a property and return its value, or "" if it was absent."""
        with self._lock:
            return self._properties.pop(key, "")

    def marshall_properties(self) -> str:
        with self._lock:
            return "".join(
                f"{k}{NAME_VALUE_SEPARATOR}{v}{PROPERTY_SEPARATOR}"
                for k, v in self._properties.items()
            )

    def unmarshal_properties(self, data: Union[bytes, str]) -> None:
        """Merge properties parsed from their wire form into this message."""
        text = data.decode("utf-8", errors="replace") if isinstance(data, (bytes, bytearray)) else data
        with self._lock:
            for item in text.split(PROPERTY_SEPARATOR):
                kv = item.split(NAME_VALUE_SEPARATOR)
                if len(kv) == 2:
                    self._properties[kv[0]] = kv[1]

    def get_properties(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._properties)

    def with_delay_time_level(self, level: int) -> "Message":
        """Delay consumption; level 1 is 1s, following 1s 5s 10s 30s 1m 2m ... 2h."""
        self.with_property(PROPERTY_DELAY_TIME_LEVEL, str(level))
        return self

    def with_tag(self, tags: str) -> "Message":
        self.with_property(PROPERTY_TAGS, tags)
        return self

    def with_keys(self, keys: Iterable[str]) -> "Message":
        self.with_property(PROPERTY_KEYS, "".join(k + PROPERTY_KEY_SEPARATOR for k in keys))
        return self

    def with_sharding_key(self, key: str) -> "Message":
        self.with_property(PROPERTY_SHARDING_KEY, key)
        return self

    @property
    def tags(self) -> str:
        return self.get_property(PROPERTY_TAGS)

    @property
    def keys(self) -> str:
        return self.get_property(PROPERTY_KEYS)

    @property
    def sharding_key(self) -> str:
        return self.get_property(PROPERTY_SHARDING_KEY)

    def marshal(self) -> bytes:
        """Encode as TOTALSIZE MAGICCODE BODYCRC FLAG BODYSIZE BODY PROPERTYSIZE PROPERTIES."""
        properties = self.marshall_properties().encode("utf-8")
        body = bytes(self.body or b"")
        store_size = 4 * 5 + len(body) + 2 + len(properties)
        header = struct.pack(
            ">IIIII", store_size & 0xFFFFFFFF, 0, 0, self.flag & 0xFFFFFFFF, len(body)
        )
        return header + body + struct.pack(">H", len(properties) & 0xFFFF) + properties

    def __str__(self) -> str:
        body = bytes(self.body or b"").decode("utf-8", errors="replace")
        return (
            f"[topic={self.topic}, body={body}, Flag={self.flag}, "
            f"properties={_format_map(self.get_properties())}, TransactionId={self.transaction_id}]"
        )


@dataclass
class MessageExt(Message):
    """A message as stored by a broker, with its storage metadata."""

    msg_id: str = ""
    offset_msg_id: str = ""
    store_size: int = 0
    queue_offset: int = 0
    sys_flag: int = 0
    born_timestamp: int = 0
    born_host: str = ""
    store_timestamp: int = 0
    store_host: str = ""
    commit_log_offset: int = 0
    body_crc: int = 0
    reconsume_times: int = 0
    prepared_transaction_offset: int = 0

    @property
    def region_id(self) -> str:
        return self.get_property(PROPERTY_MSG_REGION)

    @property
    def trace_on(self) -> str:
        return self.get_property(PROPERTY_TRACE_SWITCH)

    def __str__(self) -> str:
        queue_id = self.queue.queue_id if self.queue is not None else 0
        return (
            f"[Message={Message.__str__(self)}, MsgId={self.msg_id}, OffsetMsgId={self.offset_msg_id},"
            f"QueueId={queue_id}, StoreSize={self.store_size}, QueueOffset={self.queue_offset}, "
            f"SysFlag={self.sys_flag}, BornTimestamp={self.born_timestamp}, BornHost={self.born_host}, "
            f"StoreTimestamp={self.store_timestamp}, StoreHost={self.store_host}, "
            f"CommitLogOffset={self.commit_log_offset}, BodyCRC={self.body_crc}, "
            f"ReconsumeTimes={self.reconsume_times}, "
            f"PreparedTransactionOffset={self.prepared_transaction_offset}]"
        )


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self.pos = 0

    def remaining(self) -> int:
        return len(self._data) - self.pos

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self._data):
            raise ValueError("truncated message data")
        chunk = self._data[self.pos : self.pos + n]
        self.pos += n
        return chunk

    def unpack(self, fmt: str) -> int:
        (value,) = struct.unpack(fmt, self.take(struct.calcsize(fmt)))
        return value


def decode_message(data: bytes) -> List[MessageExt]:
    """Decode the broker's stored-message records into MessageExt objects."""
    reader = _Reader(data)
    msgs: List[MessageExt] = []
    while reader.remaining() > 0:
        msg = MessageExt()
        msg.store_size = reader.unpack(">i")
        reader.take(4)  # magic code
        msg.body_crc = reader.unpack(">i")
        queue_id = reader.unpack(">i")
        msg.flag = reader.unpack(">i")
        msg.queue_offset = reader.unpack(">q")
        msg.commit_log_offset = reader.unpack(">q")
        msg.sys_flag = reader.unpack(">i")
        msg.born_timestamp = reader.unpack(">q")
        born_host = reader.take(4)
        born_port = reader.unpack(">i")
        msg.born_host = f"{utils.get_address_by_bytes(born_host)}:{born_port}"
        msg.store_timestamp = reader.unpack(">q")
        store_host = reader.take(4)
        store_port = reader.unpack(">i")
        msg.store_host = f"{utils.get_address_by_bytes(store_host)}:{store_port}"
        msg.reconsume_times = reader.unpack(">i")
        msg.prepared_transaction_offset = reader.unpack(">q")

        body = reader.take(reader.unpack(">i"))
        if msg.sys_flag & FLAG_COMPRESSED == FLAG_COMPRESSED:
            body = utils.uncompress(body)
        msg.body = body

        msg.topic = reader.take(reader.unpack(">B")).decode("utf-8", errors="replace")
        msg.queue = MessageQueue(topic="", broker_name="", queue_id=queue_id)

        properties_length = reader.unpack(">h")
        if properties_length > 0:
            msg.unmarshal_properties(reader.take(properties_length))
        elif properties_length < 0:
            raise ValueError("negative properties length")

        msg.offset_msg_id = create_message_id(store_host, store_port, msg.commit_log_offset)
        msg.msg_id = msg.get_property(PROPERTY_UNIQUE_CLIENT_MESSAGE_ID_KEY_INDEX) or msg.offset_msg_id
        msgs.append(msg)
    return msgs


@dataclass(frozen=True)
class MessageQueue:
    """A queue of a topic on a broker."""

    topic: str = ""
    broker_name: str = ""
    queue_id: int = 0

    def __str__(self) -> str:
        return (
            f"MessageQueue [topic={self.topic}, brokerName={self.broker_name}, "
            f"queueId={self.queue_id}]"
        )

    def hash_code(self) -> int:
        result = 1
        result = 31 * result + utils.hash_string(self.broker_name)
        result = 31 * result + self.queue_id
        result = 31 * result + utils.hash_string(self.topic)
        return result


class AccessChannel(enum.IntEnum):
    LOCAL = 0
    CLOUD = 1


class MessageType(enum.IntEnum):
    NORMAL_MSG = 0
    TRANS_MSG_HALF = 1
    TRANS_MSG_COMMIT = 2
    DELAY_MSG = 3


class LocalTransactionState(enum.IntEnum):
    COMMIT_MESSAGE = 1
    ROLLBACK_MESSAGE = 2
    UNKNOWN = 3


class TransactionListener(abc.ABC):
    """Callbacks a transactional producer uses to resolve half messages."""

    @abc.abstractmethod
    def execute_local_transaction(self, msg: Message) -> LocalTransactionState:
        """Run the local transaction after the half message was sent."""

    @abc.abstractmethod
    def check_local_transaction(self, msg: MessageExt) -> LocalTransactionState:
        """Report the local transaction state when the broker asks for it."""


@dataclass(frozen=True)
class MessageID:
    addr: str
    port: int
    offset: int


def create_message_id(addr: bytes, port: int, offset: int) -> str:
    """Upper-case hex of the address bytes, the port (int32) and the offset (int64)."""
    return (bytes(addr) + struct.pack(">iq", port, offset)).hex().upper()


def unmarshal_msg_id(msg_id: Union[str, bytes]) -> MessageID:
    text = msg_id.decode("ascii", errors="replace") if isinstance(msg_id, (bytes, bytearray)) else msg_id
    if len(text) < 32:
        raise ValueError(f"{text} len < 32")
    ip_bytes = bytes.fromhex(text[0:8])
    (port,) = struct.unpack(">I", bytes.fromhex(text[8:16]))
    (offset,) = struct.unpack(">q", bytes.fromhex(text[16:32]))
    return MessageID(addr=utils.get_address_by_bytes(ip_bytes), port=port, offset=offset)


def get_transaction_value(flag: int) -> int:
    return flag & TRANSACTION_ROLLBACK_TYPE


def reset_transaction_value(flag: int, type_flag: int) -> int:
    return (flag & ~TRANSACTION_ROLLBACK_TYPE) | type_flag


def clear_compressed_flag(flag: int) -> int:
    return flag & ~COMPRESSED_FLAG


def pid() -> int:
    """The process id truncated to a signed 16-bit value."""
    value = os.getpid() & 0xFFFF
    return value - 0x10000 if value & 0x8000 else value


class _UniqIdGenerator:
    _CLASS_LOAD_ID = 0

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = 0
        self._start = 0
        self._next = 0
        self._prefix: Optional[str] = None

    def _make_prefix(self) -> str:
        try:
            ip = utils.client_ip4()
        except OSError:
            ip = utils.fake_ip()
        return (bytes(ip) + struct.pack(">hi", pid(), self._CLASS_LOAD_ID)).hex().upper()

    def _update_timestamp(self) -> None:
        now = datetime.datetime.now()
        start = datetime.datetime(now.year, now.month, 1)
        if now.month == 12:
            following = datetime.datetime(now.year + 1, 1, 1)
        else:
            following = datetime.datetime(now.year, now.month + 1, 1)
        self._start = int(start.timestamp())
        self._next = int(following.timestamp())

    def next_id(self) -> str:
        with self._lock:
            if self._prefix is None:
                self._prefix = self._make_prefix()
            if int(time.time()) > self._next:
                self._update_timestamp()
            self._counter = ((self._counter + 1 + 0x8000) & 0xFFFF) - 0x8000
            elapsed = ((int(time.time()) - self._start) * 1000) & 0xFFFFFFFF
            return self._prefix + struct.pack(">Ih", elapsed, self._counter).hex()


_uniq_ids = _UniqIdGenerator()


def create_uniq_id() -> str:
    """A client-unique message id: host, pid and a time-based counter in hex."""
    return _uniq_ids.next_id()


class SendStatus(enum.IntEnum):
    SEND_OK = 0
    FLUSH_DISK_TIMEOUT = 1
    FLUSH_SLAVE_TIMEOUT = 2
    SLAVE_NOT_AVAILABLE = 3
    UNKNOWN_ERROR = 4


@dataclass
class SendResult:
    """Outcome of sending a message."""

    status: SendStatus = SendStatus.UNKNOWN_ERROR
    msg_id: str = ""
    message_queue: Optional[MessageQueue] = None
    queue_offset: int = 0
    transaction_id: str = ""
    offset_msg_id: str = ""
    region_id: str = ""
    trace_on: bool = False

    def __str__(self) -> str:
        return (
            f"SendResult [sendStatus={int(self.status)}, msgIds={self.msg_id}, "
            f"offsetMsgId={self.offset_msg_id}, queueOffset={self.queue_offset}, "
            f"messageQueue={self.message_queue}]"
        )


@dataclass
class TransactionSendResult(SendResult):
    state: LocalTransactionState = LocalTransactionState.UNKNOWN


class PullStatus(enum.IntEnum):
    FOUND = 0
    NO_NEW_MSG = 1
    NO_MSG_MATCHED = 2
    OFFSET_ILLEGAL = 3
    BROKER_TIMEOUT = 4


@dataclass
class PullResult:
    next_begin_offset: int = 0
    min_offset: int = 0
    max_offset: int = 0
    status: PullStatus = PullStatus.FOUND
    suggest_which_broker_id: int = 0
    message_exts: List[MessageExt] = field(default_factory=list)
    body: bytes = b""

    def messages(self) -> List[Message]:
        return list(self.message_exts)