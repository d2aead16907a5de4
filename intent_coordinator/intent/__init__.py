"""Intent parsing and validation.

The intent layer converts free-text swap requests into a strict `StructuredIntent` via the language
model, then re-derives every financially sensitive field deterministically.
"""
