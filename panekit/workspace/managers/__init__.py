"""Managers for user-owned files outside a running session.

Managers take explicit directories as parameters and raise domain
exceptions (``LookupError``, ``ValueError``), never click exceptions --
that translation is the CLI's responsibility.
"""
