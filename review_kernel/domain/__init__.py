"""Pure domain layer: value enums, clock, transition-table abstraction."""
