"""
Billing package - plans, subscriptions, the payment ledger and gateway events.

This package integrates with:
- Stripe: checkout, one-time payments, the billing portal and webhooks

Subscription status only changes through the state machine; the services here
load state, run a transition and execute its commands in one transaction.
"""
