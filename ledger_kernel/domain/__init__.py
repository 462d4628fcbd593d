"""Pure domain layer: clock, temporal predicates, balance rules, DTOs."""
