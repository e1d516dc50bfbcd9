"""Pydantic wire models for the PLP CMS API."""
