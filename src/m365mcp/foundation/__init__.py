"""Foundation layer: configuration and the structured error model."""
