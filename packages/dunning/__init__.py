"""
Dunning package - retry scheduling for failed subscription payments.

A dunning case is opened on the first failed payment of a subscription and
walks the configured retry schedule until a payment succeeds or the attempts
run out, at which point the subscription is canceled.
"""
