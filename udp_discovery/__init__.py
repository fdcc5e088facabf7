"""
UDP Service Discovery

Lets services advertise themselves over UDP broadcast, authenticated by a
pre-shared key, and lets clients find every reachable, correctly keyed
service without a central registry.
"""

__version__ = "1.0.0"
