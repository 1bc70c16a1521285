"""Offer definitions and the generation pipeline."""
