"""Stateful components of the context engine.

Each manager works against a ``StateStore`` and raises domain exceptions
(``SessionNotFoundError``, ``ValidationError``, ``StoreUnavailableError``),
never HTTP exceptions -- that translation is the app's responsibility.
"""
