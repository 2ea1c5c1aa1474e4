"""
Client side of the ticket tracker: an HTTP adapter that returns canonical
ticket dataclasses and a headless board controller holding UI state.
"""
