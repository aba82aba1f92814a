"""
nvidia-migmanager: applies the MIG settings of an instance to its NVIDIA GPUs.
"""

__version__ = "0.1.0"
