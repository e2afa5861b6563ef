"""upy-package - install MicroPython packages on Arduino boards."""

__version__ = '1.0.0'
