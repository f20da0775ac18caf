"""Clerk webhook inbound system.

Receives Svix-signed account lifecycle events from Clerk.
Each webhook is signature-verified, decoded into a typed event,
and applied to the user store as one idempotent write.
"""
