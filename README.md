# rmqclient

Client-side building blocks for a distributed message queue.

- `rmqclient.message`: `Message` and `MessageExt`, `MessageQueue`, the
  binary codec (`Message.marshal`, `decode_message`), message ids
  (`create_message_id`, `unmarshal_msg_id`, `create_uniq_id`), transaction
  flag helpers (`get_transaction_value`, `reset_transaction_value`,
  `clear_compressed_flag`), the `TransactionListener` interface, and send and
  pull results (`SendResult`, `TransactionSendResult`, `PullResult`).
- `rmqclient.selector`: queue selectors for producers.
  `ManualQueueSelector` uses the queue set on the message.
  `RandomQueueSelector` picks a queue at random and takes an optional seed.
  `RoundRobinQueueSelector` cycles through the queues and keeps one position
  per topic. `HashQueueSelector` hashes the message's sharding key with
  FNV-1a, or picks at random when the message has no key.
- `rmqclient.ctx`: an immutable `Context` plus helpers that store values in it
  and read them back: the communication mode (`with_method`, `get_method`),
  the producer context (`with_producer_ctx`, `get_producer_ctx`) and the
  consumer contexts (`with_consumer_ctx`, `with_orderly_ctx`,
  `with_concurrently_ctx` and their getters). `get_method` and
  `get_producer_ctx` raise `LookupError` when the value is missing. The other
  getters return `None`.
- `rmqclient.interceptor`: `chain_interceptors` merges several interceptors
  into one. The merged interceptor runs them in order and then runs the final
  invoker.
- `rmqclient.utils`: `hash_string` (a signed 32-bit base-31 hash),
  `uncompress` (zlib, returning the input unchanged when it is not zlib data),
  `write_to_file` (writes through a `.tmp` file and keeps a `.bak` copy of the
  old contents), `local_ip`, and `UniqueSet` with `to_json`.
- `rmqclient.log`: a replaceable package logger (`DefaultLogger`,
  `set_logger`, `set_log_level`, `set_output_path`).

## Installation

```
pip install .
```

Python 3.10 or later is required. The package has no third-party dependencies.

## Example

```python
from rmqclient.message import Message, MessageQueue
from rmqclient.selector import RoundRobinQueueSelector

msg = Message(topic="TopicTest", body=b"hello")
msg.with_tag("TagA").with_keys(["order-1"])

queues = [MessageQueue(topic="TopicTest", broker_name="broker-a", queue_id=i) for i in range(4)]
queue = RoundRobinQueueSelector().select(msg, queues)   # queue_id 1, then 2, 3, 0, ...

wire = msg.marshal()   # TOTALSIZE MAGICCODE BODYCRC FLAG BODYSIZE BODY PROPERTYSIZE PROPERTIES
```

A message id is built from the store host address, the port and the commit
log offset:

```python
from rmqclient.message import create_message_id, unmarshal_msg_id

msg_id = create_message_id(bytes([10, 93, 233, 58]), 10911, 4391252)
# "0A5DE93A00002A9F0000000000430154"
parsed = unmarshal_msg_id(msg_id)
# parsed.addr == "10.93.233.58", parsed.port == 10911, parsed.offset == 4391252
```

Chaining interceptors:

```python
from rmqclient.ctx import Context
from rmqclient.interceptor import chain_interceptors

def timing(ctx, req, reply, next_invoker):
    return next_invoker(ctx, req, reply)

def audit(ctx, req, reply, next_invoker):
    return next_invoker(ctx, req, reply)

chained = chain_interceptors(timing, audit)
chained(Context(), "request", None, lambda ctx, req, reply: "sent")   # "sent"
```

## Logging

The level starts from the `ROCKETMQ_LOG_LEVEL` environment variable. Accepted
values are `debug`, `warn` and `error`; any other value means `info`. Call
`rmqclient.log.set_log_level` to change the level and
`rmqclient.log.set_output_path` to append output to a file. To install your
own logger, subclass `rmqclient.log.Logger` and pass an instance to
`set_logger`; anything else raises `TypeError`. `DefaultLogger.fatal` logs at
critical level and then raises `SystemExit(1)`.

## What this package does not do

The package provides no network layer. It does not connect to brokers and does
not send or pull messages. It has no producer or consumer objects, no name
server lookup and no producer configuration builder, and it does not encode or
dispatch message trace records. Its types and helpers are building blocks for
a client that provides those parts.

## Running the tests

```
pip install .[test]
pytest
```