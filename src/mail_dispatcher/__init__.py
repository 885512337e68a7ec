"""Mail Dispatcher - poll mailboxes and forward mail by subject."""

__version__ = "0.1.0"
