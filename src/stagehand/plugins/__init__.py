"""Built-in plugins resolvable by name: ``cors``, ``health``, ``metrics``.

A plugin module exposes ``plugin(app, options)``.
"""
