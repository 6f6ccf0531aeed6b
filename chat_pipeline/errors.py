"""Failure categories raised by the chat pipeline."""


class ChatPipelineError(Exception):
    """Base class for pipeline errors."""


class BadRequest(ChatPipelineError):
    """The request body cannot be answered (missing or empty messages)."""


class StoreUnavailable(ChatPipelineError):
    """The local vector index is missing or cannot be read."""


class ServiceUnavailable(ChatPipelineError):
    """A downstream dependency failed while handling a request."""
