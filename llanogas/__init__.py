"""LLANOGAS correspondence portal API."""
