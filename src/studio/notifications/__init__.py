"""
Studio Notification Senders

Outbound channels: X (Twitter).
"""
from .x_sender import XSender, SendResult

__all__ = [
    'XSender',
    'SendResult',
]
