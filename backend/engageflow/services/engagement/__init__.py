"""
Engagement workflow: transition table, item store, state machine and batch review.
"""
