"""Transcript fragment publisher for pub/sub event delivery."""

import logging
from typing import Callable
from pubsub import pub
from ..models.transcription import TranscriptFragment

logger = logging.getLogger(__name__)

FRAGMENT_TOPIC = "transcript.fragment"


class TranscriptPublisher:
    """Publishes transcript fragments using pubsub.pub.

    Providers publish here and consumers subscribe to the topic, so the
    transcript side can be driven without a live provider.
    """

    def __init__(self, topic: str = FRAGMENT_TOPIC):
        """Initialize transcript publisher.

        Args:
            topic: Pub/sub topic name for transcript fragments
        """
        self.topic = topic
        logger.info(f"TranscriptPublisher initialized with topic: {topic}")

    def publish_fragment(self, fragment: TranscriptFragment) -> None:
        """Publish a fragment to the pub/sub topic.

        Args:
            fragment: TranscriptFragment to publish
        """
        pub.sendMessage(self.topic, fragment=fragment)
        logger.debug(f"Published fragment (final={fragment.is_final}): {fragment.text[:40]!r}")

    def get_callback(self) -> Callable[[TranscriptFragment], None]:
        """Get callback function for transcription channels to use."""
        return self.publish_fragment
