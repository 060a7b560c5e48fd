"""
Promotion watch service package.

This package polls the supermarket catalog for watched products, detects
when they go on promotion or change price while on one, and notifies the
Discord channels subscribed to them.  See DESIGN.md for details.
"""

__all__ = [
    "catalog",
    "command_server",
    "commands",
    "config",
    "dispatcher",
    "errors",
    "main",
    "monitor",
    "notifier",
    "subscriptions",
    "utils",
]
