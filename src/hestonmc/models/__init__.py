"""hestonmc value types.

- **numerical.py** - Precision enum for device buffer element types.
- **device.py** - Device classes and the device description reported by a backend.
"""
