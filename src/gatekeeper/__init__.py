"""Tenant auth code gatekeeper for the inference gateway."""
