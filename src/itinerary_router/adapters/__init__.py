"""
Adapter implementations for the Itinerary Router.

Adapters are concrete implementations of the port interfaces.
They handle the specifics of pricing sources, caching, and search algorithms.
"""
