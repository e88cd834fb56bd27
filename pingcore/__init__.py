"""Reachability and latency probing over TCP, HTTP and HTTPS"""

__version__ = '1.0.0'
