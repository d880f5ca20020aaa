"""
Grimoire services.

Catalog assembly, search, collection editing and the daily selection.
Import from the submodules directly.
"""
