"""Ledger Approvals Service.

Administrators approve pending ledger transactions; approval cascades into
loan disbursements, balance updates, membership activation, realtime
notifications and confirmation emails.
"""

__version__ = "0.1.0"
