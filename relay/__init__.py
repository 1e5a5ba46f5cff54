"""Webhook relay: capture POST payloads on named slugs and inspect them."""
