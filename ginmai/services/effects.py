# After-commit side effects: realtime change events + push messages

from ginmai.errors import Outcome
from ginmai.integrations.expo_push import ExpoPushSender
from ginmai.realtime.pubsub import ChangePublisher


async def dispatch(outcome: Outcome, publisher: ChangePublisher, push_sender: ExpoPushSender) -> None:
    """Only called after commit. Both collaborators swallow their own failures."""
    if not outcome.ok:
        return
    if outcome.changes:
        await publisher.publish(outcome.changes)
    if outcome.pushes:
        await push_sender.send_all(outcome.pushes)
