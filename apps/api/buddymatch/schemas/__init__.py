"""Pydantic schemas shared by routers and services."""
