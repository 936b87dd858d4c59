"""
Nonsense Timer

A shared "time since last nonsense" counter: one server owns the elapsed
time and broadcasts it, any number of display clients discover the server,
subscribe to the broadcasts and render the value.
"""

__version__ = "1.0.0"
__author__ = "Nonsense Timer Developers"
__description__ = "Broadcast elapsed-time server and display clients"
