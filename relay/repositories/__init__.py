"""
Persistence adapters.

These modules encapsulate how hooks are stored/retrieved (a local JSON file or
a SQL database). Services depend on the HookStore interface rather than on a
concrete engine; the factory picks one at startup.
"""
