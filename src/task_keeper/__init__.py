"""Keeps the completion history of recurring remote tasks across service resets."""
