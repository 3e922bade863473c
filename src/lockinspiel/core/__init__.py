"""Core configuration for Lockinspiel."""
