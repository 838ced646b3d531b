"""Negotiation lifecycle, outreach rendering and caller-facing operations."""
