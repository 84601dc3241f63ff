"""
Property-based tests for the notification queue.

Uses Hypothesis to check the capacity bound, eviction order and dismissal.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from archon.enums import NotificationLevel
from archon.notifications import MAX_NOTIFICATIONS, Notification, NotificationQueue


@st.composite
def notification_strategy(draw) -> Notification:
    """Generate notifications at any level."""
    return Notification(
        message=draw(st.text(min_size=1, max_size=40)),
        level=draw(st.sampled_from(list(NotificationLevel))),
    )


class TestNotificationBoundProperty:
    """Property-based tests for the capacity bound."""

    @given(count=st.integers(min_value=0, max_value=200))
    @settings(max_examples=100)
    def test_queue_keeps_most_recent(self, count: int) -> None:
        """
        Property 1: The queue keeps the most recent entries in order.

        *For any* number of pushes, the queue SHALL hold the last
        min(count, 50) notifications in their original relative order.
        """
        queue = NotificationQueue()
        pushed = [Notification.info(f"message {i}") for i in range(count)]
        for notification in pushed:
            queue.push(notification)

        kept = min(count, MAX_NOTIFICATIONS)
        assert len(queue) == kept
        assert list(queue) == pushed[count - kept:]

    def test_fifty_one_pushes_evict_the_first(self) -> None:
        """
        Property 1b: Pushing 51 notifications leaves the 50 most recent.
        """
        queue = NotificationQueue()
        pushed = [Notification.info(f"n{i}") for i in range(51)]
        for notification in pushed:
            queue.push(notification)

        assert len(queue) == 50
        assert pushed[0] not in list(queue)
        assert list(queue) == pushed[1:]

    @given(notifications=st.lists(notification_strategy(), min_size=1, max_size=60))
    @settings(max_examples=100)
    def test_dismiss_pops_oldest(self, notifications: list[Notification]) -> None:
        """
        Property 2: Dismiss removes the oldest notification.
        """
        queue = NotificationQueue()
        for notification in notifications:
            queue.push(notification)
        expected = list(queue)

        dismissed = queue.dismiss()

        assert dismissed is expected[0]
        assert list(queue) == expected[1:]

    def test_dismiss_on_empty_queue_is_noop(self) -> None:
        queue = NotificationQueue()
        assert queue.dismiss() is None
        assert len(queue) == 0

    def test_emit_and_count_by_level(self) -> None:
        queue = NotificationQueue()
        queue.emit("saved", NotificationLevel.SUCCESS)
        queue.emit("failed", NotificationLevel.ERROR)
        queue.emit("saved again", NotificationLevel.SUCCESS)

        assert queue.count(NotificationLevel.SUCCESS) == 2
        assert queue.count(NotificationLevel.ERROR) == 1
        assert queue.latest().message == "saved again"

    def test_level_constructors(self) -> None:
        assert Notification.info("a").level == NotificationLevel.INFO
        assert Notification.success("a").level == NotificationLevel.SUCCESS
        assert Notification.warning("a").level == NotificationLevel.WARNING
        assert Notification.error("a").level == NotificationLevel.ERROR
