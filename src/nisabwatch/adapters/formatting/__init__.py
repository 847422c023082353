"""
Formatting Adapters - Message and Notification Text

This package contains the text formatter for bot replies and alerts.
"""
