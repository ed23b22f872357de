"""Rate-paced traffic generation on top of a SimPy discrete-event scheduler.

The package is split into ``core`` (scheduler facade, generator, transport
collaborators), ``scenario`` (configuration and the scenario driver) and
``utils`` (metrics, tracing and plotting).
"""
