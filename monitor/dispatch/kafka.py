"""Publish investigation requests to Kafka.

One JSON message per user, keyed by the user principal name so repeated
requests for the same user land on the same partition.  The review service
(``python -m review.main --consume``) works through the topic.

produce() only enqueues; delivery happens on the producer's background
thread and is polled opportunistically, so a slow broker never stalls the
poll loop.
"""

import json
import sys
import time

from confluent_kafka import Producer
from confluent_kafka.admin import AdminClient, NewTopic

from monitor.dispatch import Launcher

DEFAULT_TOPIC = "signin-investigations"


def ensure_topic(bootstrap_servers, topic, partitions=3, replication=1):
    """Create the topic if it doesn't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    fs = admin.create_topics([NewTopic(topic, num_partitions=partitions,
                                       replication_factor=replication)])
    for t, f in fs.items():
        try:
            f.result()
            print(f"Created topic '{t}'")
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                print(f"Topic '{t}' already exists")
            else:
                raise


def _on_delivery(err, msg):
    if err is not None:
        print(f"Investigation request not delivered: {err}", file=sys.stderr)


class KafkaLauncher(Launcher):
    name = "kafka"

    def __init__(self, bootstrap_servers="localhost:9092", topic=DEFAULT_TOPIC,
                 producer=None, source="monitor"):
        self.topic = topic
        self.source = source
        self._producer = producer or Producer({
            "bootstrap.servers": bootstrap_servers,
            "client.id": "signin-monitor",
        })

    def launch(self, user):
        request = {
            "user": user,
            "requested_at": time.time(),
            "requested_by": self.source,
        }
        self._producer.produce(
            self.topic,
            key=user.encode(),
            value=json.dumps(request).encode(),
            on_delivery=_on_delivery,
        )
        self._producer.poll(0)

    def close(self):
        self._producer.flush(10)
