"""Core utilities and shared infrastructure.

- config: Environment configuration loading and validation
- constants: Named constants
- context: Cancellation and deadline context
- exceptions: Custom exception hierarchy
- ingress: HTTP boundary helpers
"""
