"""Bastion application package."""
