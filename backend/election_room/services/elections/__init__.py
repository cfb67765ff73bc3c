"""Election domain services: payouts, ledger, participation, lifecycle, chat.

This package contains the economic core that HTTP routes and socket
handlers call into, keeping transport concerns separated from election
mechanics. Helpers here add to the session but leave committing to the
operation that owns the transaction.
"""
