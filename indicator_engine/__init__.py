"""Streaming technical indicator engine."""
