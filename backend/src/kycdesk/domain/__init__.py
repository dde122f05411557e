"""Domain layer: pure submission and attachment rules, no I/O."""
