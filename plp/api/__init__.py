"""HTTP API for PLP CMS."""
