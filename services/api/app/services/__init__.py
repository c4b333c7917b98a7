"""Business logic services.

Services compose the store adapter and the cache-aside controller and are
called by routes. Collaborators (store, cache, hydrator, clock) are passed in
explicitly so tests can swap them.
"""
