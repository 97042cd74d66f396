"""Gmail access for the connected mailbox"""
