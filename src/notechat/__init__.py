"""notechat — local persistence and archive core for chat-organised notes."""

__version__ = "0.3.0"
