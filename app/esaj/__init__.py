"""Retrieval core for the TJSP e-SAJ public case portal."""
