"""Business logic services.

Services hold the catalogue rules (rating counters, review paging, event
handling, image resizing) and receive their stores explicitly; the
ServiceContainer wires them together.
"""
