"""
Subscriptions package - plan catalog, subscription lifecycle, proration and
feature usage accounting.

Payments are out of scope: proration amounts are computed and recorded in the
subscription history for whoever integrates a payment provider.
"""
