"""
New Account Reporting Module

This module provides the scheduled report of recently created directory accounts.
It queries the directory, builds an HTML summary, exports a spreadsheet and
emails the result to the configured recipients.
"""

__version__ = "1.0.0"
