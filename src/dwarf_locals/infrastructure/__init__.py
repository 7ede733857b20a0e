"""Infrastructure layer: ELF access, configuration and logging."""
