"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (OpenAI, HTTP, console,
configuration files) by implementing the interfaces defined in the domain layer.
"""
