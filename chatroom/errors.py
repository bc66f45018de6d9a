class ChatroomError(Exception):
    pass


class MalformedFrame(ChatroomError, ValueError):
    """Inbound frame that is not a valid `message` or `ping`."""
