"""Core components for rate-paced traffic generation.

This module contains the scheduler facade, the rate-paced generator and the
transport collaborators it sends through (sockets, links and packet sinks).
"""
