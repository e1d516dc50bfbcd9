"""plp subcommands."""
