"""Quote lifecycle.

Modules:
    award             award / undo-award coordinator
    lifecycle         archive / reopen transitions
    primary_action    single best next action per viewer role
    needs_reply       which side owes the next message reply
    events            best-effort timeline event sink
"""
