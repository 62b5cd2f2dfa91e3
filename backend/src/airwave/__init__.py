"""Client-side presence and real-time helpers for Airwave listeners."""
