"""Tenant knowledge collections and hybrid retrieval."""
