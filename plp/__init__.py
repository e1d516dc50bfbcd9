"""PLP CMS: content-management backend for the program website."""
