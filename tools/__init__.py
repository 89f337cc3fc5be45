from .alerting import SlackAlerter

__all__ = ["SlackAlerter"]
