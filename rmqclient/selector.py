"""Strategies for choosing the queue a message is sent to."""

from __future__ import annotations

import abc
import random
import threading
from typing import Dict, Optional, Sequence

from rmqclient.message import Message, MessageQueue

_INT32_MAX = 2**31 - 1
_FNV32_OFFSET = 0x811C9DC5
_FNV32_PRIME = 0x01000193


def _fnv1a_32(data: bytes) -> int:
    h = _FNV32_OFFSET
    for b in data:
        h ^= b
        h = (h * _FNV32_PRIME) & 0xFFFFFFFF
    return h


class QueueSelector(abc.ABC):
    """Chooses one queue out of the queues of a topic."""

    @abc.abstractmethod
    def select(
        self, message: Message, queues: Sequence[MessageQueue]
    ) -> Optional[MessageQueue]: ...


class ManualQueueSelector(QueueSelector):
    """Uses the queue set on the message itself."""

    def select(
        self, message: Message, queues: Sequence[MessageQueue]
    ) -> Optional[MessageQueue]:
        return message.queue


class RandomQueueSelector(QueueSelector):
    """Picks a random queue each time."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._rand = random.Random(seed)

    def select(
        self, message: Message, queues: Sequence[MessageQueue]
    ) -> Optional[MessageQueue]:
        return queues[self._rand.randrange(len(queues))]


class RoundRobinQueueSelector(QueueSelector):
    """Cycles through the queues, keeping one position per topic."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._indexer: Dict[str, int] = {}

    def select(
        self, message: Message, queues: Sequence[MessageQueue]
    ) -> Optional[MessageQueue]:
        topic = message.topic
        with self._lock:
            i = self._indexer.get(topic, 0) + 1
            if i > _INT32_MAX:
                i -= 2**32
            if i < 0:
                i = -i
                self._indexer[topic] = 0
            else:
                self._indexer[topic] = i
        return queues[i % len(queues)]


class HashQueueSelector(QueueSelector):
    """Hashes the sharding key to a queue; without a key, picks a random queue."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = RandomQueueSelector(seed)

    def select(
        self, message: Message, queues: Sequence[MessageQueue]
    ) -> Optional[MessageQueue]:
        key = message.sharding_key
        if not key:
            return self._random.select(message, queues)
        return queues[_fnv1a_32(key.encode("utf-8")) % len(queues)]