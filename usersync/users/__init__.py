"""User records mirrored from the identity provider."""
