"""Helpers shared by the API and CLI: payload validation, pagination and output."""
