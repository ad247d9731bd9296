"""Gateway that turns inbound SMTP mail into webhook calls."""

__version__ = "0.1.0"
