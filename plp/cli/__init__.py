"""``plp`` command-line interface."""
