import pytest

from rmqclient.message import Message, MessageQueue
from rmqclient.selector import (
    HashQueueSelector,
    ManualQueueSelector,
    RandomQueueSelector,
    RoundRobinQueueSelector,
)


@pytest.fixture
def queues():
    return [MessageQueue(queue_id=i) for i in range(10)]


def test_round_robin(queues):
    s = RoundRobinQueueSelector()
    m = Message(topic="test")
    mrr = Message(topic="rr")
    for i in range(100):
        q = s.select(m, queues)
        expected = (i + 1) % len(queues)
        assert q is queues[expected], i

        qrr = s.select(mrr, queues)
        assert qrr is queues[expected], i


def test_hash_queue_selector_same_key_same_queue(queues):
    s = HashQueueSelector()
    m1 = Message(topic="test", body=b"one message")
    m1.with_sharding_key("same_key")
    q1 = s.select(m1, queues)

    m2 = Message(topic="test", body=b"another message")
    m2.with_sharding_key("same_key")
    q2 = s.select(m2, queues)
    assert q1 == q2
    assert q1 in queues


def test_hash_without_key_picks_a_member(queues):
    s = HashQueueSelector(seed=7)
    m = Message(topic="test")
    for _ in range(20):
        assert s.select(m, queues) in queues


def test_manual_selector_returns_message_queue(queues):
    target = MessageQueue(topic="t", broker_name="b", queue_id=3)
    m = Message(topic="t", queue=target)
    assert ManualQueueSelector().select(m, queues) is target


def test_random_selector_is_seeded_and_in_range(queues):
    m = Message(topic="t")
    a = RandomQueueSelector(seed=1)
    b = RandomQueueSelector(seed=1)
    picks_a = [a.select(m, queues) for _ in range(30)]
    picks_b = [b.select(m, queues) for _ in range(30)]
    assert picks_a == picks_b
    assert all(q in queues for q in picks_a)