"""Core domain types shared across QuasarFlow components."""
