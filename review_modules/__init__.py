"""
Request modules: one package per reviewable request kind.

Each package holds a ``models`` module (status enum, frozen record,
validation), an ``orm`` module (joined-table subclass of
``ReviewRequestModel``) and a ``workflows`` module (transition table and
status machine).
"""
