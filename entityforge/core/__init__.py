"""Core layer: models, errors, and generative-model providers."""
